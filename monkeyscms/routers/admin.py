"""
Server-rendered admin UI.

Pages use the session cookie for authentication and carry the session's
CSRF token in every form. Node forms are built from the content type's
fields and re-rendered with validation errors on failure.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from ..auth.dependencies import ADMIN_PERMISSION, get_admin_user, get_session
from ..auth.service import AuthService
from ..auth.sessions import SessionManager
from ..blocks import BlockManager, BlockRenderer
from ..cache import get_cache
from ..config import settings
from ..content import NodeManager
from ..content.manager import NODE_STATUSES
from ..database import get_db
from ..exceptions import FormValidationException, NotFoundException, ValidationException
from ..fields.form import CSRF_FIELD, FORM_ERRORS_KEY
from ..helpers import parse_form_data
from ..logging_config import log_security_event
from ..metrics import track_login
from ..models import Node, User
from ..taxonomy import TaxonomyManager

router = APIRouter(prefix="/admin", tags=["Admin"], include_in_schema=False)

BASE_PATH = Path(__file__).resolve().parent.parent
templates = Jinja2Templates(directory=str(BASE_PATH / "templates"))

CHALLENGE_KEY = "_2fa_challenge"
NODE_FORM_ID = "node_form"


def _render(
    request: Request,
    session: SessionManager,
    name: str,
    context: Optional[Dict[str, Any]] = None,
    status_code: int = status.HTTP_200_OK,
) -> HTMLResponse:
    """Render an admin template with the session's CSRF token and flash messages."""
    page = {
        "app_name": settings.APP_NAME,
        "csrf_field": CSRF_FIELD,
        "csrf_token": session.csrf_token(),
        "flash_success": session.get_flash("success"),
        "flash_error": session.get_flash("error"),
    }
    page.update(context or {})
    response = templates.TemplateResponse(request=request, name=name, context=page, status_code=status_code)
    session.set_cookie(response)
    return response


def _redirect(session: SessionManager, url: str) -> RedirectResponse:
    response = RedirectResponse(url, status_code=status.HTTP_303_SEE_OTHER)
    session.set_cookie(response)
    return response


async def form_body(request: Request) -> Dict[str, Any]:
    """Parsed form body with ``name[0][sub]`` keys nested."""
    form = await request.form()
    return parse_form_data(form.multi_items())


def _verified(request: Request, session: SessionManager, form: Dict[str, Any]) -> Dict[str, Any]:
    """
    Form data without the CSRF field, once the token checks out.

    Raises:
        HTTPException: 403 if the CSRF token is missing or wrong
    """
    data = dict(form)
    if not session.verify_csrf_token(data.pop(CSRF_FIELD, None)):
        log_security_event(
            "admin.csrf_rejected",
            success=False,
            level=logging.WARNING,
            ip_address=request.client.host if request.client else None,
            path=request.url.path,
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid CSRF token")
    return data


# ==================== LOGIN ====================


@router.get("/login", response_class=HTMLResponse)
def login_page(request: Request, session: SessionManager = Depends(get_session)):
    return _render(request, session, "admin/login.html")


@router.post("/login", response_class=HTMLResponse)
def login(
    request: Request,
    session: SessionManager = Depends(get_session),
    db: Session = Depends(get_db),
    form: Dict[str, Any] = Depends(form_body),
):
    """
    Authenticate with password and bind the session to the user.

    Accounts with 2FA are sent to the code page with the challenge token
    kept in the session.
    """
    data = _verified(request, session, form)
    result = AuthService(db).attempt(
        str(data.get("login", "")),
        str(data.get("password", "")),
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        with_tokens=False,
    )

    if result.requires_2fa:
        track_login("2fa_required")
        session.set(CHALLENGE_KEY, result.challenge_token)
        return _redirect(session, "/admin/login/2fa")
    if not result.success:
        track_login("failure")
        return _render(
            request,
            session,
            "admin/login.html",
            {"error": result.error, "login": data.get("login", "")},
            status_code=status.HTTP_401_UNAUTHORIZED,
        )
    return _complete_login(session, result.user)


def _complete_login(session: SessionManager, user: User) -> RedirectResponse:
    if not user.has_permission(ADMIN_PERMISSION):
        track_login("failure")
        session.error("Your account cannot access the admin area")
        return _redirect(session, "/admin/login")
    track_login("success")
    session.login(user.id)
    session.regenerate_csrf_token()
    return _redirect(session, session.pull_intended_url("/admin"))


@router.get("/login/2fa", response_class=HTMLResponse)
def two_factor_page(request: Request, session: SessionManager = Depends(get_session)):
    if not session.get(CHALLENGE_KEY):
        return _redirect(session, "/admin/login")
    return _render(request, session, "admin/two_factor.html")


@router.post("/login/2fa", response_class=HTMLResponse)
def two_factor(
    request: Request,
    session: SessionManager = Depends(get_session),
    db: Session = Depends(get_db),
    form: Dict[str, Any] = Depends(form_body),
):
    data = _verified(request, session, form)
    challenge = session.get(CHALLENGE_KEY)
    if not challenge:
        return _redirect(session, "/admin/login")

    result = AuthService(db).verify_two_factor(
        challenge,
        str(data.get("code", "")),
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        with_tokens=False,
    )
    if not result.success:
        track_login("failure")
        return _render(
            request,
            session,
            "admin/two_factor.html",
            {"error": result.error},
            status_code=status.HTTP_401_UNAUTHORIZED,
        )
    session.forget(CHALLENGE_KEY)
    return _complete_login(session, result.user)


@router.post("/logout")
def logout(
    request: Request,
    session: SessionManager = Depends(get_session),
    form: Dict[str, Any] = Depends(form_body),
):
    _verified(request, session, form)
    session.logout()
    response = RedirectResponse("/admin/login", status_code=status.HTTP_303_SEE_OTHER)
    SessionManager.clear_cookie(response)
    return response


# ==================== DASHBOARD ====================


@router.get("", response_class=HTMLResponse)
def dashboard(
    request: Request,
    user: User = Depends(get_admin_user),
    session: SessionManager = Depends(get_session),
    db: Session = Depends(get_db),
):
    nodes = NodeManager(db)
    taxonomy = TaxonomyManager(db)
    return _render(
        request,
        session,
        "admin/dashboard.html",
        {
            "user": user,
            "content_types": nodes.types.list(),
            "node_count": nodes.count(),
            "recent_nodes": nodes.list(limit=10),
            "block_count": len(BlockManager(db).list_blocks()),
            "vocabularies": taxonomy.list_vocabularies(),
            "cache_stats": get_cache().stats(),
        },
    )


# ==================== CONTENT ====================


@router.get("/structure/types", response_class=HTMLResponse)
def content_types(
    request: Request,
    user: User = Depends(get_admin_user),
    session: SessionManager = Depends(get_session),
    db: Session = Depends(get_db),
):
    types = NodeManager(db).types
    return _render(
        request,
        session,
        "admin/content_types.html",
        {
            "user": user,
            "types": [
                {"record": record, "fields": types.get_fields(record.type_id)} for record in types.list()
            ],
        },
    )


@router.get("/content", response_class=HTMLResponse)
def node_list(
    request: Request,
    content_type: Optional[str] = Query(None, alias="type"),
    node_status: Optional[str] = Query(None, alias="status"),
    user: User = Depends(get_admin_user),
    session: SessionManager = Depends(get_session),
    db: Session = Depends(get_db),
):
    nodes = NodeManager(db)
    return _render(
        request,
        session,
        "admin/node_list.html",
        {
            "user": user,
            "nodes": nodes.list(content_type=content_type, status=node_status),
            "types": nodes.types.list(),
            "current_type": content_type,
            "current_status": node_status,
            "statuses": NODE_STATUSES,
        },
    )


def _node_form(
    request: Request,
    session: SessionManager,
    nodes: NodeManager,
    content_type: str,
    action: str,
    values: Dict[str, Any],
    node: Optional[Node] = None,
    node_data: Optional[Dict[str, Any]] = None,
    errors: Optional[Dict[str, List[str]]] = None,
    status_code: int = status.HTTP_200_OK,
) -> HTMLResponse:
    fields = nodes.types.get_fields(content_type)
    builder = nodes.fields.form_builder(fields).with_id(NODE_FORM_ID).with_errors(errors or {})
    rendered = builder.build_fields(fields, values)
    data = node_data or {}
    return _render(
        request,
        session,
        "admin/node_form.html",
        {
            "content_type": nodes.types.require(content_type),
            "node": node,
            "action": action,
            "title": data.get("title", node.title if node else ""),
            "slug": data.get("slug", node.slug if node else ""),
            "node_status": data.get("status", node.status if node else "draft"),
            "statuses": NODE_STATUSES,
            "fields_html": rendered.html,
            "assets_html": rendered.assets.render(),
            "errors": errors or {},
            "form_errors": (errors or {}).get(FORM_ERRORS_KEY, []),
            "revisions": nodes.revisions(node) if node else [],
        },
        status_code=status_code,
    )


def _submitted_values(nodes: NodeManager, content_type: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Field values from the form body; absent fields count as empty."""
    return {field.machine_name: data.get(field.machine_name) for field in nodes.types.get_fields(content_type)}


@router.get("/content/add/{type_id}", response_class=HTMLResponse)
def node_create_page(
    type_id: str,
    request: Request,
    user: User = Depends(get_admin_user),
    session: SessionManager = Depends(get_session),
    db: Session = Depends(get_db),
):
    nodes = NodeManager(db)
    defaults = {field.machine_name: field.default_value for field in nodes.types.get_fields(type_id)}
    return _node_form(request, session, nodes, type_id, f"/admin/content/add/{type_id}", defaults)


@router.post("/content/add/{type_id}", response_class=HTMLResponse)
def node_create(
    type_id: str,
    request: Request,
    user: User = Depends(get_admin_user),
    session: SessionManager = Depends(get_session),
    db: Session = Depends(get_db),
    form: Dict[str, Any] = Depends(form_body),
):
    data = _verified(request, session, form)
    nodes = NodeManager(db)
    values = _submitted_values(nodes, type_id, data)
    try:
        node = nodes.create(
            type_id,
            data.get("title", ""),
            values,
            author_id=user.id,
            status=data.get("status", "draft"),
            slug=data.get("slug") or None,
            log_message=data.get("log_message") or None,
        )
    except FormValidationException as e:
        return _node_form(
            request,
            session,
            nodes,
            type_id,
            f"/admin/content/add/{type_id}",
            values,
            node_data=data,
            errors=e.errors,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )
    session.success(f"{node.title} has been created")
    return _redirect(session, f"/admin/content/{node.id}/edit")


@router.get("/content/{node_id}/edit", response_class=HTMLResponse)
def node_edit_page(
    node_id: int,
    request: Request,
    user: User = Depends(get_admin_user),
    session: SessionManager = Depends(get_session),
    db: Session = Depends(get_db),
):
    nodes = NodeManager(db)
    node = nodes.require(node_id)
    return _node_form(
        request, session, nodes, node.content_type, f"/admin/content/{node.id}/edit", nodes.get_values(node), node
    )


@router.post("/content/{node_id}/edit", response_class=HTMLResponse)
def node_edit(
    node_id: int,
    request: Request,
    user: User = Depends(get_admin_user),
    session: SessionManager = Depends(get_session),
    db: Session = Depends(get_db),
    form: Dict[str, Any] = Depends(form_body),
):
    data = _verified(request, session, form)
    nodes = NodeManager(db)
    node = nodes.require(node_id)
    values = _submitted_values(nodes, node.content_type, data)
    try:
        nodes.update(
            node,
            title=data.get("title", ""),
            values=values,
            status=data.get("status"),
            slug=data.get("slug") or None,
            author_id=user.id,
            log_message=data.get("log_message") or None,
        )
    except FormValidationException as e:
        db.rollback()
        return _node_form(
            request,
            session,
            nodes,
            node.content_type,
            f"/admin/content/{node.id}/edit",
            values,
            node,
            node_data=data,
            errors=e.errors,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )
    session.success(f"{node.title} has been updated")
    return _redirect(session, f"/admin/content/{node.id}/edit")


@router.post("/content/{node_id}/revert/{revision_id}")
def node_revert(
    node_id: int,
    revision_id: int,
    request: Request,
    user: User = Depends(get_admin_user),
    session: SessionManager = Depends(get_session),
    db: Session = Depends(get_db),
    form: Dict[str, Any] = Depends(form_body),
):
    _verified(request, session, form)
    nodes = NodeManager(db)
    node = nodes.revert(nodes.require(node_id), revision_id, author_id=user.id)
    session.success(f"{node.title} has been reverted to revision {revision_id}")
    return _redirect(session, f"/admin/content/{node.id}/edit")


@router.post("/content/{node_id}/delete")
def node_delete(
    node_id: int,
    request: Request,
    user: User = Depends(get_admin_user),
    session: SessionManager = Depends(get_session),
    db: Session = Depends(get_db),
    form: Dict[str, Any] = Depends(form_body),
):
    _verified(request, session, form)
    nodes = NodeManager(db)
    node = nodes.require(node_id)
    title = node.title
    nodes.delete(node)
    session.success(f"{title} has been deleted")
    return _redirect(session, "/admin/content")


# ==================== BLOCKS ====================


@router.get("/blocks", response_class=HTMLResponse)
def block_list(
    request: Request,
    user: User = Depends(get_admin_user),
    session: SessionManager = Depends(get_session),
    db: Session = Depends(get_db),
):
    """Blocks grouped by theme region, with the unplaced ones last."""
    manager = BlockManager(db)
    regions = settings.get_theme_regions()
    placed = {region: manager.list_blocks(region) for region in regions}
    unplaced = [block for block in manager.list_blocks() if block.region not in regions]
    renderer = BlockRenderer(manager, get_cache())
    previews = renderer.render_regions(list(regions), {"current_path": "/", "user": user})
    return _render(
        request,
        session,
        "admin/blocks.html",
        {
            "user": user,
            "regions": regions,
            "placed": placed,
            "unplaced": unplaced,
            "previews": previews,
            "block_types": manager.get_types_grouped(),
        },
    )


@router.post("/blocks/{block_id}/place")
def block_place(
    block_id: int,
    request: Request,
    user: User = Depends(get_admin_user),
    session: SessionManager = Depends(get_session),
    db: Session = Depends(get_db),
    form: Dict[str, Any] = Depends(form_body),
):
    data = _verified(request, session, form)
    manager = BlockManager(db)
    block = manager.get_block(block_id)
    if block is None:
        raise NotFoundException("Block", block_id)
    try:
        weight = int(data.get("weight") or 0)
        manager.place_block(block, data.get("region") or None, weight)
    except ValueError:
        session.error("Weight must be a whole number")
    except ValidationException as e:
        session.error(e.details.get("reason", e.message))
    else:
        BlockRenderer(manager, get_cache()).clear_cache(block.id)
        session.success(f"{block.admin_title} has been placed")
    return _redirect(session, "/admin/blocks")


# ==================== TAXONOMY ====================


@router.get("/taxonomy", response_class=HTMLResponse)
def vocabulary_list(
    request: Request,
    user: User = Depends(get_admin_user),
    session: SessionManager = Depends(get_session),
    db: Session = Depends(get_db),
):
    taxonomy = TaxonomyManager(db)
    return _render(
        request,
        session,
        "admin/vocabularies.html",
        {
            "user": user,
            "vocabularies": [
                {"record": vocabulary, "term_count": taxonomy.get_term_count(vocabulary.vocabulary_id)}
                for vocabulary in taxonomy.list_vocabularies()
            ],
        },
    )


@router.get("/taxonomy/{vocabulary_id}", response_class=HTMLResponse)
def term_tree(
    vocabulary_id: str,
    request: Request,
    user: User = Depends(get_admin_user),
    session: SessionManager = Depends(get_session),
    db: Session = Depends(get_db),
):
    taxonomy = TaxonomyManager(db)
    vocabulary = taxonomy.get_vocabulary(vocabulary_id)
    if vocabulary is None:
        raise NotFoundException("Vocabulary", vocabulary_id)
    return _render(
        request,
        session,
        "admin/term_tree.html",
        {
            "user": user,
            "vocabulary": vocabulary,
            "tree": taxonomy.get_term_tree(vocabulary_id),
            "terms": taxonomy.flatten_tree(vocabulary_id),
        },
    )


@router.post("/taxonomy/{vocabulary_id}/terms")
def term_create(
    vocabulary_id: str,
    request: Request,
    user: User = Depends(get_admin_user),
    session: SessionManager = Depends(get_session),
    db: Session = Depends(get_db),
    form: Dict[str, Any] = Depends(form_body),
):
    data = _verified(request, session, form)
    parent_id = data.get("parent_id")
    try:
        term = TaxonomyManager(db).create_term(
            vocabulary_id,
            {
                "name": data.get("name", ""),
                "description": data.get("description") or None,
                "parent_id": int(parent_id) if str(parent_id or "").isdigit() else None,
            },
        )
    except ValidationException as e:
        session.error(e.details.get("reason", e.message))
    else:
        session.success(f"{term.name} has been added")
    return _redirect(session, f"/admin/taxonomy/{vocabulary_id}")
