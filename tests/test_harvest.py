"""Tests for the fan-out scheduler and catalog aggregation."""

from __future__ import annotations

import threading
from typing import Dict

import pytest

from zengin.config.policies import Policies
from zengin.entities import Branch, Catalog, LiveInstitution
from zengin.harvest import (
    CatalogAggregator,
    FanOutScheduler,
    HtmlTableParser,
    NetworkError,
    SearchKeySpace,
    build_aggregator,
)

SENTINEL = "該当するデータはありません"
EMPTY_PAGE = f"<table><tbody><tr><td>{SENTINEL}</td></tr></tbody></table>"


def institution_page(*rows: tuple[str, str, str, str]) -> str:
    cells = "".join(
        f"<tr><td>{name}</td><td>{phonetic}</td><td>{code}</td>"
        f"<td><button value='{token}'>支店</button></td></tr>"
        for name, phonetic, code, token in rows
    )
    return f"<div class='j0'><table><tbody>{cells or f'<tr><td>{SENTINEL}</td></tr>'}</tbody></table></div>"


def branch_page(*rows: tuple[str, str, str]) -> str:
    cells = "".join(f"<tr><td>{n}</td><td>{p}</td><td>{c}</td></tr>" for n, p, c in rows)
    return f"<table><tbody>{cells}</tbody></table>"


class StubClient:
    """In-memory stand-in for the remote service keyed by search key."""

    def __init__(
        self,
        institutions: Dict[str, str | Exception],
        branches: Dict[tuple[str, str], str | Exception] | None = None,
    ) -> None:
        self.institutions = institutions
        self.branches = branches or {}
        self.calls: list[tuple[str, ...]] = []
        self._lock = threading.Lock()

    def _answer(self, value: str | Exception) -> str:
        if isinstance(value, Exception):
            raise value
        return value

    def fetch_institution_page(self, key: str) -> str:
        with self._lock:
            self.calls.append(("institution", key))
        return self._answer(self.institutions.get(key, institution_page()))

    def fetch_branch_page(self, institution: LiveInstitution, key: str) -> str:
        with self._lock:
            self.calls.append(("branch", institution.query_token, key))
        return self._answer(self.branches.get((institution.code, key), EMPTY_PAGE))


def make_aggregator(client: StubClient, keys: str, **kwargs) -> CatalogAggregator:
    scheduler = FanOutScheduler(client, HtmlTableParser(), shard_concurrency=4)
    return CatalogAggregator(scheduler, SearchKeySpace.from_alphabet(keys), **kwargs)


def test_failed_shard_is_dropped_and_reported() -> None:
    client = StubClient(
        {
            "あ": institution_page(("いぬ銀行", "ｲﾇ", "0111", "t-0111")),
            "い": NetworkError("connection reset"),
        }
    )
    scheduler = FanOutScheduler(client, HtmlTableParser(), shard_concurrency=2)

    batch = scheduler.fetch_all_institutions("あい")

    assert [institution.code for institution in batch.succeeded] == ["0111"]
    assert batch.failed_keys == ["い"]
    assert batch.failures[0].error_type == "network"
    assert batch.shards_total == 2
    assert batch.shards_succeeded == 1
    assert batch.summary() == "succeeded with 1 of 2 shards"


def test_compose_catalog_survives_shard_error() -> None:
    client = StubClient(
        {
            "あ": institution_page(("いぬ銀行", "ｲﾇ", "0111", "t-0111")),
            "い": NetworkError("timeout"),
        }
    )
    aggregator = make_aggregator(client, "あい")

    report = aggregator.compose_full_catalog(include_branches=False)

    assert list(report.catalog) == ["0111"]
    assert report.institution_batch.failed_keys == ["い"]
    assert not report.complete
    assert report.branch_batches == {}


def test_parse_error_counts_as_shard_failure() -> None:
    client = StubClient({"あ": "<html><body>maintenance</body></html>"})
    scheduler = FanOutScheduler(client, HtmlTableParser())

    batch = scheduler.fetch_all_institutions("あ")

    assert batch.succeeded == []
    assert batch.failures[0].error_type == "parse"


def test_rejected_rows_are_counted_not_fatal() -> None:
    page = "<div class='j0'><table><tbody>" "<tr><td>a</td><td>b</td></tr>" "</tbody></table></div>"
    scheduler = FanOutScheduler(StubClient({"あ": page}), HtmlTableParser())

    batch = scheduler.fetch_all_institutions("あ")

    assert batch.complete
    assert batch.rejected_rows == 1


def test_merge_keeps_one_entry_per_code_last_write_wins() -> None:
    aggregator = make_aggregator(StubClient({}), "あ")
    first = LiveInstitution(
        name="旧",
        phonetic="ｷｭｳ",
        code="0001",
        query_token="a",
        branches=[Branch(name="本店", phonetic="ﾎﾝﾃﾝ", code="001")],
    )
    second = LiveInstitution(name="新", phonetic="ｼﾝ", code="0001", query_token="b")
    other = LiveInstitution(name="他", phonetic="ﾀ", code="0002", query_token="c")

    catalog = aggregator.merge([first, other, second])

    assert len(catalog) == 2
    assert catalog["0001"] is second
    assert catalog["0001"].branches == []


def test_merge_is_idempotent() -> None:
    aggregator = make_aggregator(StubClient({}), "あ")
    institutions = [
        LiveInstitution(name=f"銀行{i}", phonetic="ｷﾞﾝｺｳ", code=f"{i % 3:04d}", query_token=str(i))
        for i in range(7)
    ]

    once = aggregator.merge(institutions)
    twice = aggregator.merge(once)

    assert twice == once
    assert len(once) == len({institution.code for institution in institutions})


def test_attach_branches_with_sentinel_only_response_sets_empty_list() -> None:
    institution = LiveInstitution(
        name="かめ信金",
        phonetic="ｶﾒ",
        code="2740",
        query_token="tok",
        branches=[Branch(name="古い支店", phonetic="ﾌﾙｲ", code="999")],
    )
    client = StubClient({}, {("2740", "う"): EMPTY_PAGE})
    aggregator = make_aggregator(client, "う")

    batch = aggregator.scheduler.fetch_all_branches(institution, SearchKeySpace("う"))
    aggregator.attach_branches(institution, batch.succeeded)

    assert batch.complete
    assert institution.branches == []
    assert client.calls == [("branch", "tok", "う")]


def test_compose_full_catalog_attaches_branches_per_institution() -> None:
    client = StubClient(
        {
            "あ": institution_page(("ねこ銀行", "ﾈｺ", "0222", "t-0222")),
            "い": institution_page(("いぬ銀行", "ｲﾇ", "0111", "t-0111"), ("ねこ銀行", "ﾈｺ", "0222", "t-0222")),
        },
        {
            ("0222", "あ"): branch_page(("みけ支店", "ﾐｹ", "0123")),
            ("0222", "い"): branch_page(("とら支店", "ﾄﾗ", "0789")),
            ("0111", "い"): NetworkError("reset"),
        },
    )
    aggregator = make_aggregator(client, "あい", institution_concurrency=2)

    report = aggregator.compose_full_catalog()

    catalog = report.catalog
    assert sorted(catalog) == ["0111", "0222"]
    assert sorted(branch.code for branch in catalog["0222"].branches) == ["0123", "0789"]
    assert catalog["0111"].branches == []
    assert report.branch_batches["0111"].failed_keys == ["い"]
    assert report.shards_total == 2 + 2 * 2
    assert report.shards_succeeded == 5
    assert report.summary() == "succeeded with 5 of 6 shards"
    assert report.metrics["branches"] == 2
    assert report.metrics["institutions"] == 2


def test_branch_keys_subset_limits_requests() -> None:
    client = StubClient({"あ": institution_page(("ねこ銀行", "ﾈｺ", "0222", "t"))})
    aggregator = make_aggregator(client, "あいう")

    aggregator.compose_full_catalog(keys="あ", branch_keys="う")

    assert sorted(client.calls) == [("branch", "t", "う"), ("institution", "あ")]


def test_cancelled_scheduler_records_every_shard_as_failed() -> None:
    client = StubClient({})
    scheduler = FanOutScheduler(client, HtmlTableParser(), cancel_event=threading.Event())
    scheduler.cancel()

    batch = scheduler.fetch_all_institutions("あいう")

    assert batch.succeeded == []
    assert sorted(batch.failed_keys) == ["あ", "い", "う"]
    assert {failure.error_type for failure in batch.failures} == {"cancelled"}
    assert client.calls == []


def test_empty_key_set_returns_empty_batch() -> None:
    scheduler = FanOutScheduler(StubClient({}), HtmlTableParser())

    batch = scheduler.fetch_all_institutions([])

    assert batch.shards_total == 0
    assert batch.complete


def test_build_aggregator_applies_policy_bounds() -> None:
    policies = Policies.model_validate(
        {
            "harvest": {
                "key_rows": ["あいう", "か"],
                "branch_key_rows": ["あ"],
                "shard_concurrency": 3,
                "institution_concurrency": 2,
            }
        }
    )

    aggregator = build_aggregator(policies, client=StubClient({}))

    assert aggregator.key_space.alphabet == "あいうか"
    assert aggregator.branch_key_space.alphabet == "あ"
    assert aggregator.max_inflight_requests == 6


def test_catalog_to_persisted_drops_tokens() -> None:
    live = LiveInstitution(name="n", phonetic="p", code="0001", query_token="secret")
    catalog: Catalog[LiveInstitution] = Catalog([live])

    persisted = catalog.to_persisted()

    assert "query_token" not in persisted["0001"].model_dump()
    assert catalog["0001"].query_token == "secret"


def test_invalid_concurrency_rejected() -> None:
    with pytest.raises(ValueError):
        FanOutScheduler(StubClient({}), HtmlTableParser(), shard_concurrency=0)
