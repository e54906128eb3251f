# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261018v1
# ---------------------------------------------------------------------------
"""
Admin pages – user management, per-user shelves, statistics, audit trail.

Every endpoint in this router is guarded by ``require_admin``.  A request
from a guest (or from nobody) receives 403 before any business logic runs.
"""

import io

from fastapi import APIRouter, Depends, Form, Query, Request, status
from fastapi.responses import RedirectResponse, StreamingResponse
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
from sqlalchemy.orm import Session, aliased

from admin.schemas import AuditLogListResponse, AuditLogRow, UserRow
from auth import store as users
from books import store as shelf
from core.errors import ConflictError, ValidationError
from core.guards import require_admin, verify_csrf
from core.logger import logger
from core.security import get_client_ip
from core.templating import render
from database import get_db
from models.audit_log import AuditLog
from models.session import UserSession
from models.user import User

router = APIRouter(prefix="/admin", tags=["admin"])


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=status.HTTP_303_SEE_OTHER)


def _audit(db: Session, request: Request, admin_id: int, action: str, target_user_id=None, detail=None) -> None:
    db.add(
        AuditLog(
            admin_id=admin_id,
            target_user_id=target_user_id,
            action=action,
            detail=detail,
            request_ip=get_client_ip(request),
        )
    )
    db.commit()


# ---------------------------------------------------------------------------
# GET /admin/dashboard  – all users + library totals
# ---------------------------------------------------------------------------


@router.get("/dashboard")
def dashboard(
    request: Request,
    admin: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    book_count, review_count = shelf.library_counts(db)
    return render(
        request,
        "admin/dashboard.html",
        {
            "users": [UserRow.model_validate(u) for u in users.list_users(db)],
            "book_count": book_count,
            "review_count": review_count,
        },
    )


# ---------------------------------------------------------------------------
# GET /admin/user/{id}  – one user's shelf and stats
# ---------------------------------------------------------------------------


@router.get("/user/{user_id}")
def user_detail(
    user_id: int,
    request: Request,
    admin: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    target = users.get_user(db, user_id)
    return render(
        request,
        "admin/user.html",
        {
            "view_user": UserRow.model_validate(target),
            "books": shelf.list_shelf(db, target.id),
            "stats": shelf.user_stats(db, target.id),
        },
    )


# ---------------------------------------------------------------------------
# GET/POST /admin/user/{id}/add-book
# ---------------------------------------------------------------------------


@router.get("/user/{user_id}/add-book")
def add_book_page(
    user_id: int,
    request: Request,
    admin: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    target = users.get_user(db, user_id)
    return render(request, "admin/add_book.html", {"view_user": UserRow.model_validate(target), "book": {}})


@router.post("/user/{user_id}/add-book")
def add_book(
    user_id: int,
    request: Request,
    title: str = Form(""),
    author: str = Form(""),
    year: str = Form(""),
    isbn: str = Form(""),
    rating: str = Form(""),
    review: str = Form(""),
    admin: UserSession = Depends(require_admin),
    _csrf: None = Depends(verify_csrf),
    db: Session = Depends(get_db),
):
    admin_id = admin.user_id
    target = UserRow.model_validate(users.get_user(db, user_id))
    submitted = {
        "title": title,
        "author": author,
        "year": year,
        "isbn": isbn,
        "rating": rating,
        "review": review,
    }
    try:
        item = shelf.add_book_to_shelf(
            db,
            target.id,
            title,
            author,
            year=year,
            isbn=isbn,
            rating=rating,
            review=review,
        )
    except (ValidationError, ConflictError) as exc:
        return render(
            request,
            "admin/add_book.html",
            {"view_user": target, "error": exc.message, "book": submitted},
            status_code=exc.status_code,
        )

    _audit(db, request, admin_id, "admin_add_book", target_user_id=target.id, detail=f"book_id={item.book_id}")
    return _redirect(f"/admin/user/{target.id}")


# ---------------------------------------------------------------------------
# POST /admin/user/{id}/toggle-role  – guest ↔ admin
# ---------------------------------------------------------------------------


@router.post("/user/{user_id}/toggle-role")
def toggle_role(
    user_id: int,
    request: Request,
    admin: UserSession = Depends(require_admin),
    _csrf: None = Depends(verify_csrf),
    db: Session = Depends(get_db),
):
    """
    Guard: an admin cannot change their own role (the store raises
    ValidationError, rendered as a 400 page).
    """
    admin_id = admin.user_id
    target = users.toggle_role(db, admin_id, user_id)
    _audit(db, request, admin_id, "change_role", target_user_id=target.id, detail=f"new_role={target.role}")
    logger.info("Role changed | admin_id=%s user_id=%s new_role=%s", admin_id, user_id, target.role)
    return _redirect("/admin/dashboard")


# ---------------------------------------------------------------------------
# POST /admin/user/{id}/delete
# ---------------------------------------------------------------------------


@router.post("/user/{user_id}/delete")
def delete_user(
    user_id: int,
    request: Request,
    admin: UserSession = Depends(require_admin),
    _csrf: None = Depends(verify_csrf),
    db: Session = Depends(get_db),
):
    """Guard: an admin cannot delete their own account."""
    admin_id = admin.user_id
    username = users.get_user(db, user_id).username if int(user_id) != int(admin_id) else None
    users.delete_user(db, admin_id, user_id)
    # The target row is gone, so the audit entry only names it.
    _audit(db, request, admin_id, "delete_user", detail=f"user_id={user_id} username={username}")
    logger.info("User deleted | admin_id=%s user_id=%s", admin_id, user_id)
    return _redirect("/admin/dashboard")


# ---------------------------------------------------------------------------
# GET /admin/stats
# ---------------------------------------------------------------------------


@router.get("/stats")
def stats(
    request: Request,
    admin: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    data = shelf.admin_stats(db)
    return render(
        request,
        "admin/stats.html",
        {
            "popular_books": data.popular_books,
            "top_rated_books": data.top_rated_books,
            "active_users": data.active_users,
        },
    )


# ---------------------------------------------------------------------------
# GET /admin/audit-logs  – newest-first audit trail
# ---------------------------------------------------------------------------


def _audit_rows(db: Session, limit: int | None = None) -> AuditLogListResponse:
    AdminUser  = aliased(User)
    TargetUser = aliased(User)

    q = (
        db.query(AuditLog, AdminUser.username, TargetUser.username)
        .outerjoin(AdminUser,  AuditLog.admin_id       == AdminUser.id)
        .outerjoin(TargetUser, AuditLog.target_user_id == TargetUser.id)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    )
    if limit:
        q = q.limit(limit)

    return AuditLogListResponse(
        logs=[
            AuditLogRow(
                id=row.id,
                admin_username=admin_name,
                target_username=target_name,
                action=row.action,
                detail=row.detail,
                request_ip=row.request_ip,
                created_at=row.created_at,
            )
            for row, admin_name, target_name in q.all()
        ]
    )


@router.get("/audit-logs")
def audit_logs(
    request: Request,
    limit: int = Query(200, ge=1, le=1000),
    admin: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return render(request, "admin/audit_logs.html", {"logs": _audit_rows(db, limit).logs})


# ---------------------------------------------------------------------------
# GET /admin/audit-logs/export  – download audit logs as Excel
# ---------------------------------------------------------------------------

_AUDIT_HEADER_FONT  = Font(name="Calibri", size=11, bold=True, color="FFFFFF")
_AUDIT_HEADER_FILL  = PatternFill(start_color="6C63FF", end_color="6C63FF", fill_type="solid")
_AUDIT_HEADER_ALIGN = Alignment(horizontal="center", vertical="center")
_AUDIT_THIN_BORDER  = Border(
    left=Side(style="thin", color="CCCCCC"),
    right=Side(style="thin", color="CCCCCC"),
    top=Side(style="thin", color="CCCCCC"),
    bottom=Side(style="thin", color="CCCCCC"),
)

_AUDIT_EXPORT_HEADERS = ["ID", "Time", "Admin", "Target", "Action", "Request IP", "Details"]
_AUDIT_COL_WIDTHS     = [8, 20, 20, 20, 18, 16, 50]


@router.get("/audit-logs/export")
def export_audit_logs(
    admin: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Export the full audit trail as an Excel workbook."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Audit Logs"

    # Header row
    ws.append(_AUDIT_EXPORT_HEADERS)
    for cell in ws[1]:
        cell.font = _AUDIT_HEADER_FONT
        cell.fill = _AUDIT_HEADER_FILL
        cell.alignment = _AUDIT_HEADER_ALIGN
        cell.border = _AUDIT_THIN_BORDER

    # Data rows
    for row in _audit_rows(db).logs:
        ws.append([
            row.id,
            row.created_at.strftime("%Y-%m-%d %H:%M:%S") if row.created_at else "",
            row.admin_username or "",
            row.target_username or "",
            row.action,
            row.request_ip or "",
            row.detail or "",
        ])
        for cell in ws[ws.max_row]:
            cell.border = _AUDIT_THIN_BORDER

    for col_idx, width in enumerate(_AUDIT_COL_WIDTHS, start=1):
        ws.column_dimensions[chr(64 + col_idx)].width = width

    # Stream
    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    wb.close()

    return StreamingResponse(
        buf,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": 'attachment; filename="audit-logs.xlsx"'},
    )
