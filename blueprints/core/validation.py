"""pydantic request bodies and query strings -> ValidationFailure."""
from __future__ import annotations
from typing import Type, TypeVar

from flask import request
from pydantic import BaseModel, ValidationError

from errors import ValidationFailure

M = TypeVar("M", bound=BaseModel)


def failure_from(ve: ValidationError) -> ValidationFailure:
    errs = ve.errors(include_url=False, include_context=False, include_input=False)
    first = errs[0] if errs else {}
    field = ".".join(str(p) for p in first.get("loc", ())) or None
    return ValidationFailure(first.get("msg", "Invalid request"), field=field, details={"errors": errs})


def load_body(model: Type[M]) -> M:
    try:
        return model.model_validate(request.get_json(silent=True) or {})
    except ValidationError as ve:
        raise failure_from(ve) from None


def load_args(model: Type[M]) -> M:
    # empty query values count as absent
    raw = {k: v for k, v in request.args.items() if v != ""}
    try:
        return model.model_validate(raw)
    except ValidationError as ve:
        raise failure_from(ve) from None
