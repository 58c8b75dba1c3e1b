import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
import httpx  # Pour appels HTTP
from fastapi import HTTPException
from loguru import logger
import config
from metrics import CATALOG_CACHE_LOOKUPS, ERROR_COUNT, EXTERNAL_CALL_COUNT, EXTERNAL_CALL_LATENCY
from models import Product

PRODUCTS_PATH = "/api/products"
TARGET_SERVICE = "catalog"


@dataclass(frozen=True)
class FreshnessPolicy:
    """
    Directive de cache pour un fetch du catalogue.
    revalidate=None correspond à "no-store" (fetch à chaque appel).
    """
    revalidate: Optional[float] = None

    @classmethod
    def no_store(cls) -> "FreshnessPolicy":
        return cls()

    @classmethod
    def every(cls, seconds: float) -> "FreshnessPolicy":
        return cls(revalidate=seconds)

    @property
    def cache_control(self) -> str:
        if self.revalidate is None:
            return "no-store"
        return f"s-maxage={self.revalidate:g}, stale-while-revalidate"


class CatalogClient:
    """Fetches the product list over HTTP and keeps revalidated payloads."""

    def __init__(self, base_url: str, transport: httpx.AsyncBaseTransport = None):
        self.base_url = base_url.rstrip("/")
        self.transport = transport
        self.clock = time.monotonic
        # url -> (fetched_at, produits)
        self._cache: Dict[str, Tuple[float, List[Product]]] = {}

    @property
    def products_url(self) -> str:
        return f"{self.base_url}{PRODUCTS_PATH}"

    def clear(self):
        self._cache.clear()

    async def fetch_products(self, policy: FreshnessPolicy, trace_id: str = None) -> List[Product]:
        url = self.products_url
        if policy.revalidate is None:
            return await self._request(url, trace_id)

        cached = self._cache.get(url)
        if cached is not None and self.clock() - cached[0] < policy.revalidate:
            CATALOG_CACHE_LOOKUPS.labels(service=config.SERVICE_NAME, result="hit").inc()
            return list(cached[1])

        CATALOG_CACHE_LOOKUPS.labels(service=config.SERVICE_NAME, result="miss").inc()
        if cached is not None:
            logger.info(f"Revalidating catalog after {policy.revalidate:g}s window", extra={"trace_id": trace_id})
        products = await self._request(url, trace_id)
        self._cache[url] = (self.clock(), list(products))
        return products

    async def _request(self, url: str, trace_id: str = None) -> List[Product]:
        start_time = time.time()
        headers = {"X-Trace-ID": trace_id} if trace_id else {}

        async with httpx.AsyncClient(transport=self.transport) as client:
            try:
                resp = await client.get(url, headers=headers)
            except httpx.RequestError as e:
                logger.bind(trace_id=trace_id).error("Error calling catalog: {}", str(e))
                EXTERNAL_CALL_COUNT.labels(
                    service=config.SERVICE_NAME,
                    target_service=TARGET_SERVICE,
                    status="error"
                ).inc()
                ERROR_COUNT.labels(service=config.SERVICE_NAME, endpoint=PRODUCTS_PATH, error_type="catalog_unreachable").inc()
                raise HTTPException(status_code=503, detail="Catalog service unavailable")

        latency = time.time() - start_time
        EXTERNAL_CALL_COUNT.labels(
            service=config.SERVICE_NAME,
            target_service=TARGET_SERVICE,
            status="success" if resp.status_code == 200 else "error"
        ).inc()
        EXTERNAL_CALL_LATENCY.labels(
            service=config.SERVICE_NAME,
            target_service=TARGET_SERVICE
        ).observe(latency)

        if resp.status_code != 200:
            logger.error(f"Catalog responded with {resp.status_code}", extra={"trace_id": trace_id})
            ERROR_COUNT.labels(service=config.SERVICE_NAME, endpoint=PRODUCTS_PATH, error_type="catalog_error").inc()
            raise HTTPException(status_code=503, detail="Catalog service unavailable")

        logger.info(f"Fetched catalog in {latency:.3f}s", extra={"trace_id": trace_id})
        return [Product(**item) for item in resp.json()]


catalog = CatalogClient(config.CATALOG_URL)


async def fetch_products(policy: FreshnessPolicy, trace_id: str = None) -> List[Product]:
    return await catalog.fetch_products(policy, trace_id)
