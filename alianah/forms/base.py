from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict

from alianah.errors import ValidationFailed


def json_formdata(payload: Optional[Mapping[str, Any]]) -> MultiDict:
    """Flat JSON object -> MultiDict of strings; nulls and nested values are dropped.

    Booleans become "true"/"false" so BooleanField reads JSON ``false`` as False.
    """
    out: MultiDict = MultiDict()
    for key, value in (payload or {}).items():
        if value is None or isinstance(value, (dict, list)):
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        out.add(key, str(value))
    return out


class JsonForm(FlaskForm):
    """FlaskForm fed from a JSON body. JSON endpoints are CSRF-exempt."""

    class Meta:
        csrf = False

    @classmethod
    def from_json(cls, payload: Optional[Mapping[str, Any]]) -> "JsonForm":
        form = cls(formdata=json_formdata(payload))
        form._payload = dict(payload or {})
        return form

    def provided(self, name: str) -> bool:
        return name in getattr(self, "_payload", {})

    def issues(self) -> Dict[str, Any]:
        return {k: list(v) for k, v in self.errors.items()}

    def validated(self) -> "JsonForm":
        if not self.validate():
            raise ValidationFailed(issues=self.issues())
        return self
