"""In-memory stand-in for the supabase client's table query builder.

Supports the subset of the PostgREST fluent API the repository uses. Logic
filters passed to ``or_`` are parsed the way PostgREST does: top-level commas
separate terms, ``and(...)`` groups, and double-quoted values keep reserved
characters literal.
"""
from typing import Any, Callable, Dict, List, Optional

Row = Dict[str, Any]
Predicate = Callable[[Row], bool]


class FakeResponse:
    def __init__(self, data: List[Row]):
        self.data = data


def _split_top_level(expr: str) -> List[str]:
    parts: List[str] = []
    buf: List[str] = []
    depth = 0
    quoted = False
    escape = False
    for ch in expr:
        if quoted:
            buf.append(ch)
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                quoted = False
            continue
        if ch == '"':
            quoted = True
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        elif ch == "," and depth == 0:
            parts.append("".join(buf))
            buf = []
            continue
        buf.append(ch)
    parts.append("".join(buf))
    return parts


def _unquote(raw: str) -> str:
    if len(raw) < 2 or raw[0] != '"' or raw[-1] != '"':
        return raw
    out: List[str] = []
    escape = False
    for ch in raw[1:-1]:
        if escape:
            out.append(ch)
            escape = False
        elif ch == "\\":
            escape = True
        else:
            out.append(ch)
    return "".join(out)


def _condition(term: str) -> Predicate:
    if term.startswith("and(") and term.endswith(")"):
        preds = [_condition(t) for t in _split_top_level(term[4:-1])]
        return lambda row: all(p(row) for p in preds)

    column, op, raw = term.split(".", 2)
    if op != "eq":
        raise ValueError(f"unsupported operator in logic filter: {op}")
    value = _unquote(raw)
    return lambda row: row.get(column) is not None and str(row.get(column)) == value


class FakeQuery:
    def __init__(self, client: "FakeSupabase", table: str):
        self.client = client
        self.table = table
        self.action = "select"
        self.payload: Any = None
        self.filters: List[Predicate] = []
        self.orders: List[tuple] = []
        self.limit_n: Optional[int] = None
        self.on_conflict = ""
        self.ignore_duplicates = False

    # --- actions ---
    def select(self, *columns):
        self.action = "select"
        return self

    def insert(self, payload):
        self.action = "insert"
        self.payload = payload
        return self

    def upsert(self, payload, on_conflict: str = "", ignore_duplicates: bool = False):
        self.action = "upsert"
        self.payload = payload
        self.on_conflict = on_conflict
        self.ignore_duplicates = ignore_duplicates
        return self

    def update(self, payload):
        self.action = "update"
        self.payload = payload
        return self

    # --- filters ---
    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self.filters.append(lambda row: row.get(column) != value)
        return self

    def gte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and row.get(column) >= value)
        return self

    def lte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and row.get(column) <= value)
        return self

    def in_(self, column, values):
        allowed = list(values)
        self.filters.append(lambda row: row.get(column) in allowed)
        return self

    def or_(self, expr: str):
        self.client.logic_filters.append(expr)
        preds = [_condition(t) for t in _split_top_level(expr)]
        self.filters.append(lambda row: any(p(row) for p in preds))
        return self

    def order(self, column, desc: bool = False):
        self.orders.append((column, desc))
        return self

    def limit(self, n: int):
        self.limit_n = n
        return self

    # --- execution ---
    def _payloads(self) -> List[Row]:
        return [dict(p) for p in (self.payload if isinstance(self.payload, list) else [self.payload])]

    def execute(self) -> FakeResponse:
        if self.client.error is not None:
            raise self.client.error

        rows = self.client.tables.setdefault(self.table, [])

        if self.action == "insert":
            payloads = self._payloads()
            rows.extend(dict(p) for p in payloads)
            return FakeResponse(payloads)

        if self.action == "upsert":
            keys = [k.strip() for k in self.on_conflict.split(",") if k.strip()]
            written: List[Row] = []
            for payload in self._payloads():
                existing = next((r for r in rows if keys and all(r.get(k) == payload.get(k) for k in keys)), None)
                if existing is None:
                    rows.append(dict(payload))
                    written.append(dict(payload))
                elif not self.ignore_duplicates:
                    existing.update(payload)
                    written.append(dict(existing))
            return FakeResponse(written)

        matched = [r for r in rows if all(f(r) for f in self.filters)]

        if self.action == "update":
            for row in matched:
                row.update(self.payload)
            return FakeResponse([dict(r) for r in matched])

        for column, desc in reversed(self.orders):
            matched.sort(key=lambda r: r.get(column), reverse=desc)
        if self.limit_n is not None:
            matched = matched[: self.limit_n]
        return FakeResponse([dict(r) for r in matched])


class FakeSupabase:
    def __init__(self, error: Optional[Exception] = None):
        self.tables: Dict[str, List[Row]] = {}
        self.error = error
        self.logic_filters: List[str] = []

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)
