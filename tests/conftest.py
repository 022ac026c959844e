from __future__ import annotations

import pytest

from folio_core.document.session import DocumentSession

SIMPLE_MD = "# Title\n\nFirst paragraph\n\nSecond paragraph"

REPORT_MD = """\
# Report

Revenue grew 5%.

Costs fell.

## Risks

Currency exposure remains.
"""


@pytest.fixture
def simple_md() -> str:
    return SIMPLE_MD


@pytest.fixture
def report_md() -> str:
    return REPORT_MD


@pytest.fixture
def session() -> DocumentSession:
    return DocumentSession()


@pytest.fixture
def report_session(report_md: str) -> DocumentSession:
    s = DocumentSession()
    s.load_document(report_md, "report")
    return s
