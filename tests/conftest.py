from __future__ import annotations
from pathlib import Path

import pytest

from docgrid import GridConfig, Policy
from docserver import DocumentSet, Settings, create_app


def touch(root: Path, rel: str, content: str = "x") -> Path:
    p = root / rel
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(content, encoding="utf-8")
    return p


@pytest.fixture
def docs(tmp_path: Path) -> Path:
    root = tmp_path / "docs"
    touch(root, "202401_Invoice.pdf", "%PDF-1.4\n%%EOF")
    touch(root, "202403_Invoice.pdf", "%PDF-1.4\n%%EOF")
    touch(root, "2024/202403_Bank.csv", "date,amount\n2024-03-01,10\n")
    touch(root, "2024/202403_Bank.txt", "March statement")
    touch(root, "notes.txt", "hello <world>")
    return root


@pytest.fixture
def settings(docs: Path, tmp_path: Path) -> Settings:
    support = tmp_path / "support"
    touch(support, "202402_INV_PAY_3-2.pdf")
    return Settings(
        document_sets=(
            DocumentSet("main", "Main Files", str(docs), GridConfig()),
            DocumentSet("support", "Support Files", str(support),
                        GridConfig(policy=Policy.DICTIONARY,
                                   dictionary=(("INV", "Invoices"), ("PAY", "Payroll")))),
        ),
        base_path="/conta_check_docs",
    )


@pytest.fixture
def client(settings: Settings):
    app = create_app(settings)
    app.config["TESTING"] = True
    return app.test_client()
