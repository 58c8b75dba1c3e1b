import html
import json
import uuid
from typing import Iterable, Optional
from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from loguru import logger
import catalog_client
import config
from auth import SIGN_IN_PAGE, get_session
from catalog_client import FreshnessPolicy
from models import Product, Session

NAV_LINKS = (
    ("/", "Home"),
    ("/client", "Client Fetch"),
    ("/ssr", "SSR Fetch"),
    ("/isr", "ISR Fetch"),
)

SSR_POLICY = FreshnessPolicy.no_store()
ISR_POLICY = FreshnessPolicy.every(config.ISR_REVALIDATE_SECONDS)

router = APIRouter()


def format_product(product: Product) -> str:
    return f"{product.name} - ${product.price}"


def render_navbar(path: str, session: Optional[Session]) -> str:
    links = []
    for href, label in NAV_LINKS:
        css = ' class="active"' if href == path else ""
        links.append(f'<a{css} href="{href}">{label}</a>')

    if session is not None:
        status = (
            f'<span>Signed in as {html.escape(session.user.name)}</span> '
            '<button type="button" id="signout">Sign out</button>'
        )
    else:
        status = f'<a href="{SIGN_IN_PAGE}">Sign in</a>'

    return (
        "<nav>"
        "<h1>My App</h1>"
        + " ".join(links)
        + f'<div class="session">{status}</div>'
        "</nav>"
    )


def render_page(title: str, body: str, path: str, session: Optional[Session], script: str = "") -> str:
    signout = ""
    if session is not None:
        # Déconnexion côté navigateur
        signout = (
            "document.getElementById('signout').addEventListener('click', async () => {"
            "const res = await fetch('/api/auth/signout', {method: 'POST'});"
            "const data = await res.json();"
            "window.location.href = data.url;"
            "});"
        )
    scripts = "".join(f"<script>{s}</script>" for s in (signout, script) if s)
    return (
        "<!DOCTYPE html>"
        '<html lang="en">'
        f'<head><meta charset="utf-8"><title>{html.escape(title)}</title></head>'
        f"<body>{render_navbar(path, session)}<main>{body}</main>{scripts}</body>"
        "</html>"
    )


def render_product_list(heading: str, products: Iterable[Product]) -> str:
    items = "".join(f"<li>{html.escape(format_product(p))}</li>" for p in products)
    return f"<h2>{html.escape(heading)}</h2><ul>{items}</ul>"


def _trace_id(request: Request) -> str:
    return getattr(request.state, "trace_id", str(uuid.uuid4()))


@router.get("/", response_class=HTMLResponse)
async def home(request: Request, session: Optional[Session] = Depends(get_session)):
    body = (
        "<h2>Data fetching strategies</h2>"
        "<ul>"
        '<li><a href="/client">Client Fetch</a>: the browser loads products after the page renders.</li>'
        '<li><a href="/ssr">SSR Fetch</a>: products are fetched on every request.</li>'
        f'<li><a href="/isr">ISR Fetch</a>: products are refreshed at most every {config.ISR_REVALIDATE_SECONDS:g} seconds.</li>'
        "</ul>"
    )
    return HTMLResponse(render_page("Home", body, request.url.path, session))


@router.get("/ssr", response_class=HTMLResponse)
async def ssr_page(request: Request, session: Optional[Session] = Depends(get_session)):
    products = await catalog_client.fetch_products(SSR_POLICY, _trace_id(request))
    logger.info(f"Rendering SSR page with {len(products)} products")
    body = render_product_list("SSR Products", products)
    return HTMLResponse(
        render_page("SSR Products", body, request.url.path, session),
        headers={"Cache-Control": SSR_POLICY.cache_control},
    )


@router.get("/isr", response_class=HTMLResponse)
async def isr_page(request: Request, session: Optional[Session] = Depends(get_session)):
    products = await catalog_client.fetch_products(ISR_POLICY, _trace_id(request))
    logger.info(f"Rendering ISR page with {len(products)} products")
    body = render_product_list("ISR Products", products)
    return HTMLResponse(
        render_page("ISR Products", body, request.url.path, session),
        headers={"Cache-Control": ISR_POLICY.cache_control},
    )


@router.get("/client", response_class=HTMLResponse)
async def client_page(request: Request, session: Optional[Session] = Depends(get_session)):
    """
    La liste est vide au rendu initial; le navigateur appelle le catalogue
    une fois le document chargé (pas d'annulation, pas de retry).
    """
    body = render_product_list("Client-side Fetched Products", [])
    script = (
        "document.addEventListener('DOMContentLoaded', () => {"
        f"fetch({json.dumps(catalog_client.PRODUCTS_PATH)})"
        ".then(res => res.json())"
        ".then(products => {"
        "const list = document.querySelector('main ul');"
        "for (const product of products) {"
        "const item = document.createElement('li');"
        "item.textContent = `${product.name} - $${product.price}`;"
        "list.appendChild(item);"
        "}"
        "});"
        "});"
    )
    return HTMLResponse(render_page("Client Fetch", body, request.url.path, session, script))


@router.get("/login", response_class=HTMLResponse)
async def login_page(request: Request, session: Optional[Session] = Depends(get_session)):
    body = (
        '<form id="login">'
        '<input name="username" placeholder="Username" required>'
        '<input type="password" name="password" placeholder="Password" required>'
        '<button type="submit">Login</button>'
        "</form>"
        '<p id="login-error" hidden>Invalid username or password.</p>'
    )
    script = (
        "document.getElementById('login').addEventListener('submit', async (e) => {"
        "e.preventDefault();"
        "const form = new FormData(e.currentTarget);"
        "const res = await fetch('/api/auth/callback/credentials', {"
        "method: 'POST',"
        "headers: {'Content-Type': 'application/json'},"
        "body: JSON.stringify({"
        "username: form.get('username'),"
        "password: form.get('password'),"
        "callbackUrl: '/dashboard'"
        "})"
        "});"
        "if (!res.ok) { document.getElementById('login-error').hidden = false; return; }"
        "const data = await res.json();"
        "window.location.href = data.url;"
        "});"
    )
    return HTMLResponse(render_page("Login", body, request.url.path, session, script))


@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard_page(request: Request, session: Optional[Session] = Depends(get_session)):
    if session is None:
        logger.info("No session on dashboard, redirecting to login")
        return RedirectResponse(url=SIGN_IN_PAGE)
    body = f"<h1>🚀 Welcome to Dashboard, {html.escape(session.user.name)}!</h1>"
    return HTMLResponse(render_page("Dashboard", body, request.url.path, session))
