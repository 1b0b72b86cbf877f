"""
PDF页数统计（导出后的 org-charts.pdf 校验页数）。

--expect 给定时与预期页数比较，不一致返回非零（用于 1 + 分组封面数 + 图表数 的人工核对）。
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path


def _add_backend_to_path() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    backend_root = repo_root / "backend"
    if str(backend_root) not in sys.path:
        sys.path.insert(0, str(backend_root))


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--pdf", required=True)
    ap.add_argument("--expect", type=int, default=None, help="预期页数")
    args = ap.parse_args()

    _add_backend_to_path()
    from orgchart_export.doc_gen import count_pdf_pages  # type: ignore

    n = count_pdf_pages(Path(args.pdf))
    print(n)
    if args.expect is not None and n != args.expect:
        print(f"页数不一致: 实际 {n}，预期 {args.expect}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
