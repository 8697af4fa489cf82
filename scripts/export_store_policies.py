# scripts/export_store_policies.py
import sys
from pathlib import Path

from src.domain.access.store_policies import DEFAULT_ACTOR_EXPR, render_store_policies


def export_store_policies(output_file: str | None = None, actor_expr: str = DEFAULT_ACTOR_EXPR) -> str:
    """Renders the PostgreSQL policies and writes them to ``output_file`` or stdout."""
    sql = render_store_policies(actor_expr)
    if output_file:
        Path(output_file).write_text(sql, encoding="utf-8")
        print(f"Wrote store policies to {output_file}")
    else:
        print(sql)
    return sql


if __name__ == "__main__":
    export_store_policies(sys.argv[1] if len(sys.argv) > 1 else None)
