# alianah/blueprints/admin_catalog.py
"""
Admin catalogue API: appeals and their fixed-amount products.

Mount: /api/admin

  GET    /appeals              ?active=1
  POST   /appeals
  PATCH  /appeals/reorder      {orderedIds: [...]}  ADMIN only, one transaction
  GET    /appeals/<id>
  PATCH  /appeals/<id>
  DELETE /appeals/<id>         ADMIN only; 409 while donations reference it
  GET    /products             ?appealId=
  POST   /products
  PATCH  /products/<id>
  DELETE /products/<id>
"""

from __future__ import annotations

import re
from typing import Optional

from flask import Blueprint, current_app, request
from sqlalchemy import exists, func, select
from sqlalchemy.exc import IntegrityError

from alianah.extensions import csrf, db
from alianah.forms import AppealForm, AppealPatchForm, ProductForm, ProductPatchForm
from alianah.models import Appeal, Donation, Fundraiser, OfflineIncome, Product, RecurringDonation
from alianah.security.sessions import admin_api_gate, get_admin_user, require_admin_role
from alianah.services.audit import record_audit

from .api_utils import _json_error, _json_ok, _request_payload, _truthy

bp = Blueprint("admin_catalog", __name__)
csrf.exempt(bp)
bp.before_request(admin_api_gate())

_NON_SLUG = re.compile(r"[^a-z0-9]+")

APPEAL_FIELDS = {
    "title": "title",
    "slug": "slug",
    "summary": "summary",
    "isActive": "is_active",
    "allowFundraising": "allow_fundraising",
    "sortOrder": "sort_order",
    "targetPence": "target_pence",
}
PRODUCT_FIELDS = {
    "name": "name",
    "amountPence": "amount_pence",
    "isActive": "is_active",
    "sortOrder": "sort_order",
}


def slugify(value: str) -> str:
    return _NON_SLUG.sub("-", (value or "").lower()).strip("-")[:190] or "appeal"


def _unique_slug(base: str, exclude_id: Optional[str] = None) -> str:
    slug, n = base, 2
    while True:
        q = select(Appeal.id).where(Appeal.slug == slug)
        if exclude_id:
            q = q.where(Appeal.id != exclude_id)
        if db.session.scalar(q) is None:
            return slug
        slug = f"{base}-{n}"
        n += 1


def _apply(form, obj, fields) -> dict:
    # only keys present in the body; omitted ones keep the column default
    changed = {}
    for key, attr in fields.items():
        if not form.provided(key):
            continue
        value = getattr(form, key).data
        if isinstance(value, str):
            value = value.strip() or None
        if value is None and attr in ("title", "name", "slug", "sort_order", "amount_pence"):
            continue
        setattr(obj, attr, value)
        changed[key] = value
    return changed


# ----------------------------
# Appeals
# ----------------------------
@bp.get("/appeals")
def list_appeals():
    q = select(Appeal).order_by(Appeal.sort_order.asc(), Appeal.created_at.desc())
    if _truthy(request.args.get("active")):
        q = q.where(Appeal.is_active.is_(True))
    appeals = db.session.scalars(q).all()
    return _json_ok({"appeals": [a.as_dict(include_products=True) for a in appeals]})


@bp.post("/appeals")
def create_appeal():
    form = AppealForm.from_json(_request_payload())
    if not form.validate():
        return _json_error("Invalid request", 400, {"issues": form.issues()})

    appeal = Appeal()
    _apply(form, appeal, APPEAL_FIELDS)
    appeal.slug = _unique_slug(form.slug.data or slugify(form.title.data))
    if not form.provided("sortOrder"):
        appeal.sort_order = (db.session.scalar(select(func.max(Appeal.sort_order))) or 0) + 1
    db.session.add(appeal)
    db.session.flush()
    record_audit(get_admin_user(), "CREATE", "appeal", appeal.id, {"title": appeal.title})
    db.session.commit()
    return _json_ok({"appeal": appeal.as_dict()}, 201)


@bp.patch("/appeals/reorder")
@require_admin_role("ADMIN")
def reorder_appeals():
    ordered = _request_payload().get("orderedIds")
    if not isinstance(ordered, list) or not ordered or not all(isinstance(i, str) and i for i in ordered):
        return _json_error("Invalid request", 400, {"issues": {"orderedIds": ["Provide at least one appeal id"]}})
    if len(set(ordered)) != len(ordered):
        return _json_error("Duplicate appeal ids", 400)

    appeals = {a.id: a for a in db.session.scalars(select(Appeal).where(Appeal.id.in_(ordered)))}
    missing = [i for i in ordered if i not in appeals]
    if missing:
        return _json_error("Appeal not found", 404, {"missing": missing})

    for index, appeal_id in enumerate(ordered):
        appeals[appeal_id].sort_order = index
    record_audit(get_admin_user(), "REORDER", "appeal", None, {"orderedIds": ordered})
    db.session.commit()
    return _json_ok({"success": True})


@bp.get("/appeals/<appeal_id>")
def get_appeal(appeal_id: str):
    appeal = db.session.get(Appeal, appeal_id)
    if appeal is None:
        return _json_error("Appeal not found", 404)
    return _json_ok({"appeal": appeal.as_dict(include_products=True)})


@bp.patch("/appeals/<appeal_id>")
def update_appeal(appeal_id: str):
    appeal = db.session.get(Appeal, appeal_id)
    if appeal is None:
        return _json_error("Appeal not found", 404)

    form = AppealPatchForm.from_json(_request_payload())
    if not form.validate():
        return _json_error("Invalid request", 400, {"issues": form.issues()})

    slug = (form.slug.data or "").strip()
    if form.provided("slug") and slug and _unique_slug(slug, exclude_id=appeal.id) != slug:
        return _json_error("Slug is already in use", 409)

    changed = _apply(form, appeal, APPEAL_FIELDS)
    record_audit(get_admin_user(), "UPDATE", "appeal", appeal.id, changed)
    db.session.commit()
    return _json_ok({"appeal": appeal.as_dict()})


def _appeal_in_use(appeal_id: str) -> bool:
    checks = [
        exists().where(model.appeal_id == appeal_id)
        for model in (Donation, RecurringDonation, Fundraiser, OfflineIncome)
    ]
    return any(db.session.execute(select(*checks)).one())


@bp.delete("/appeals/<appeal_id>")
@require_admin_role("ADMIN")
def delete_appeal(appeal_id: str):
    appeal = db.session.get(Appeal, appeal_id)
    if appeal is None:
        return _json_error("Appeal not found", 404)
    if _appeal_in_use(appeal_id):
        return _json_error("Appeal has donations or fundraisers; deactivate it instead", 409)

    title = appeal.title
    db.session.delete(appeal)
    record_audit(get_admin_user(), "DELETE", "appeal", appeal_id, {"title": title})
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        current_app.logger.exception("admin_catalog: delete appeal %s failed", appeal_id)
        return _json_error("Appeal is still referenced and cannot be deleted", 409)
    return _json_ok({"success": True})


# ----------------------------
# Products
# ----------------------------
@bp.get("/products")
def list_products():
    q = select(Product).order_by(Product.sort_order.asc(), Product.name.asc())
    appeal_id = request.args.get("appealId")
    if appeal_id:
        q = q.where(Product.appeal_id == appeal_id)
    return _json_ok({"products": [p.as_dict() for p in db.session.scalars(q)]})


@bp.post("/products")
def create_product():
    form = ProductForm.from_json(_request_payload())
    if not form.validate():
        return _json_error("Invalid request", 400, {"issues": form.issues()})
    if db.session.get(Appeal, form.appealId.data) is None:
        return _json_error("Appeal not found", 404)

    product = Product(appeal_id=form.appealId.data)
    _apply(form, product, PRODUCT_FIELDS)
    db.session.add(product)
    db.session.flush()
    record_audit(get_admin_user(), "CREATE", "product", product.id, {"name": product.name})
    db.session.commit()
    return _json_ok({"product": product.as_dict()}, 201)


@bp.patch("/products/<product_id>")
def update_product(product_id: str):
    product = db.session.get(Product, product_id)
    if product is None:
        return _json_error("Product not found", 404)

    form = ProductPatchForm.from_json(_request_payload())
    if not form.validate():
        return _json_error("Invalid request", 400, {"issues": form.issues()})

    changed = _apply(form, product, PRODUCT_FIELDS)
    record_audit(get_admin_user(), "UPDATE", "product", product.id, changed)
    db.session.commit()
    return _json_ok({"product": product.as_dict()})


@bp.delete("/products/<product_id>")
def delete_product(product_id: str):
    product = db.session.get(Product, product_id)
    if product is None:
        return _json_error("Product not found", 404)
    db.session.delete(product)
    record_audit(get_admin_user(), "DELETE", "product", product_id, {"name": product.name})
    db.session.commit()
    return _json_ok({"success": True})
