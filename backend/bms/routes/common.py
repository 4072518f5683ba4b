# Overview: Query-string helpers shared by list endpoints.

from flask import current_app, request

from ..validation import FieldErrors, parse_date, parse_int


def pagination_args() -> tuple[int, int]:
    """
    page/limit from the query string.

    limit defaults to DEFAULT_PAGE_SIZE and is capped at MAX_PAGE_SIZE.
    Raises ValidationError for non-integer or non-positive values.
    """
    errors = FieldErrors()
    page = parse_int(request.args.get("page"), "page", errors, minimum=1, required=False) or 1
    limit = parse_int(request.args.get("limit"), "limit", errors, minimum=1, required=False)
    errors.raise_if_any()

    default_size = current_app.config.get("DEFAULT_PAGE_SIZE", 10)
    max_size = current_app.config.get("MAX_PAGE_SIZE", 100)
    return page, min(limit or default_size, max_size)


def query_filters(*, dates: tuple[str, ...] = (), ints: tuple[str, ...] = ()) -> dict:
    """Parse optional date and integer query parameters; all errors reported together."""
    errors = FieldErrors()
    parsed = {}
    for name in dates:
        parsed[name] = parse_date(request.args.get(name), name, errors, required=False)
    for name in ints:
        parsed[name] = parse_int(request.args.get(name), name, errors, required=False)
    errors.raise_if_any()
    return parsed


def query_bool(name: str) -> bool | None:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    return raw.strip().lower() in ("1", "true", "yes")


def paginated(rows, total: int, page: int, limit: int, key: str) -> dict:
    return {
        key: [row.to_dict() for row in rows],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit if limit else 0,
        },
    }
