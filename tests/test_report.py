"""HTML report hooks."""

from __future__ import annotations

from tests.conftest import CONTRACT_ID, TEST_PUBLIC, explorer_link, pytest_html_results_summary


async def test_summary_links_contract_and_operator():
    prefix: list[str] = []
    pytest_html_results_summary(prefix, [], [])

    [block] = prefix
    assert explorer_link("contract", CONTRACT_ID) in block
    assert f"/account/{TEST_PUBLIC}" in block
