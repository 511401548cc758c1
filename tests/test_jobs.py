"""Tests for mapbox_backup/fetch/jobs.py.

Jobs run against an in-memory Mapbox client and a temporary output root.
"""

import io
import json
import logging

import pytest
from rich.console import Console

from mapbox_backup.core.errors import ListingError, ThrottleError, TransportError
from mapbox_backup.core.types import CategoryState, Page
from mapbox_backup.fetch.artifacts import STYLE_DOCUMENTS
from mapbox_backup.fetch.categories import DATASETS, STYLES, TILESETS, scheduler_factory
from mapbox_backup.fetch.jobs import ResourceBackupJob
from mapbox_backup.observability.logger import setup_logging
from mapbox_backup.observability.progress import ProgressReporter

from .fixtures import mapbox_responses as responses
from .fixtures.fakes import FakeMapboxClient
from .fixtures.mapbox_responses import FEATURES_PAGE_1, FEATURES_PAGE_2, STYLES_PAGE_1

DATASETS_LIST = responses.DATASETS
TILESETS_LIST = responses.TILESETS


def _job(category, client, store, settings, groups=None, **kwargs):
    return ResourceBackupJob(
        category=category,
        client=client,
        store=store,
        groups=category.groups if groups is None else groups,
        scheduler_factory=scheduler_factory(category, settings),
        **kwargs,
    )


def _read(path):
    return json.loads(path.read_text(encoding="utf-8"))


class TestStylesBackup:
    """Full styles category: list, documents, sprites."""

    @pytest.mark.asyncio
    async def test_list_and_artifacts_written(self, style_client, store, settings):
        """The list and every artifact of every style are saved."""
        result = await _job(STYLES, style_client, store, settings).run()

        assert result.state == CategoryState.DONE
        assert result.item_count == 3
        assert [s["id"] for s in _read(store.path("styles.json"))] == ["ck0001", "ck0002", "ck0003"]

        for style_id in ("ck0001", "ck0002", "ck0003"):
            assert _read(store.path("styles", f"{style_id}.json"))["draft"] is False
            assert _read(store.path("styles", f"{style_id}.draft.json"))["draft"] is True
            assert "airport-15" in _read(store.path("sprites", f"{style_id}.json"))
            assert store.path("sprites", f"{style_id}.draft.json").exists()
            assert store.path("sprites", f"{style_id}.png").read_bytes().startswith(b"\x89PNG")
            assert store.path("sprites", f"{style_id}@2x.png").exists()

        assert [g.label for g in result.groups] == ["Style Documents", "Style Sprites"]
        assert [g.total for g in result.groups] == [6, 12]
        assert result.partial_error is None

    @pytest.mark.asyncio
    async def test_list_file_format(self, style_client, store, settings):
        """Lists are written with 2-space indentation and a trailing newline."""
        await _job(STYLES, style_client, store, settings, groups=()).run()

        text = store.path("styles.json").read_text(encoding="utf-8")
        assert text.endswith("}\n]\n")
        assert '\n  {\n    "id": "ck0001"' in text

    @pytest.mark.asyncio
    async def test_second_run_skips_unchanged(self, style_client, store, settings):
        """Nothing is downloaded again when no style changed."""
        await _job(STYLES, style_client, store, settings).run()
        first_run_calls = len(style_client.calls)

        result = await _job(STYLES, style_client, store, settings).run()

        assert len(style_client.calls) == first_run_calls
        assert result.skipped == 18
        assert all(g.done == g.total for g in result.groups)

    @pytest.mark.asyncio
    async def test_changed_style_is_refetched(self, store, settings):
        """A style modified after the last run is downloaded again."""
        client = FakeMapboxClient(styles=[STYLES_PAGE_1])
        await _job(STYLES, client, store, settings, groups=(STYLE_DOCUMENTS,)).run()

        changed = [dict(STYLES_PAGE_1[0], modified="2030-01-01T00:00:00.000Z"), STYLES_PAGE_1[1]]
        client.styles = [changed]
        client.calls.clear()

        result = await _job(STYLES, client, store, settings, groups=(STYLE_DOCUMENTS,)).run()

        assert sorted(client.calls) == ["ck0001/style", "ck0001/style.draft"]
        assert result.skipped == 2

    @pytest.mark.asyncio
    async def test_changed_style_refreshes_sprites(self, store, settings):
        """Sprites of a changed style are downloaded again with its documents."""
        client = FakeMapboxClient(styles=[STYLES_PAGE_1])
        await _job(STYLES, client, store, settings).run()

        changed = [dict(STYLES_PAGE_1[0], modified="2030-01-01T00:00:00.000Z"), STYLES_PAGE_1[1]]
        client.styles = [changed]
        client.calls.clear()

        result = await _job(STYLES, client, store, settings).run()

        assert sorted(client.calls) == [
            "ck0001/sprite.draft.json",
            "ck0001/sprite.json",
            "ck0001/sprite.png",
            "ck0001/sprite@2x.png",
            "ck0001/style",
            "ck0001/style.draft",
        ]
        assert result.skipped == 6

    @pytest.mark.asyncio
    async def test_only_selected_groups_run(self, style_client, store, settings):
        """Without the sprite scope no sprite is fetched."""
        result = await _job(STYLES, style_client, store, settings, groups=(STYLE_DOCUMENTS,)).run()

        assert [g.label for g in result.groups] == ["Style Documents"]
        assert not any("sprite" in call for call in style_client.calls)


class TestListingFailure:
    """A failed listing fails the category, not the run."""

    @pytest.mark.asyncio
    async def test_failed_listing_skips_artifacts(self, store, settings):
        """No sub-artifact is fetched when the list can't be drained."""
        client = FakeMapboxClient(styles=[STYLES_PAGE_1, TransportError("HTTP 500", status=500)])

        result = await _job(STYLES, client, store, settings).run()

        assert result.state == CategoryState.FAILED
        assert not result.ok
        assert client.calls == []
        assert not store.path("styles").exists()
        assert isinstance(result.failure, ListingError)
        assert result.failure.category == "styles"

    @pytest.mark.asyncio
    async def test_failed_listing_keeps_previous_list(self, store, settings):
        """An earlier run's list file is left untouched."""
        store.write_json(store.path("styles.json"), [{"id": "old"}])
        client = FakeMapboxClient(styles=[TransportError("Network error")])

        await _job(STYLES, client, store, settings).run()

        assert _read(store.path("styles.json")) == [{"id": "old"}]

    @pytest.mark.asyncio
    async def test_unbuildable_listing(self, store, settings):
        """An error building the page fetcher fails the category."""
        client = FakeMapboxClient(list_errors={"tilesets": TransportError("No account username")})

        result = await _job(TILESETS, client, store, settings).run()

        assert result.state == CategoryState.FAILED
        assert "No account username" in str(result.listing_error)

    @pytest.mark.asyncio
    async def test_page_error_with_continuation_completes(self, store, settings):
        """A recoverable page error still saves the list."""
        page_error = TransportError("HTTP 502", status=502)
        client = FakeMapboxClient(
            tilesets=[TILESETS_LIST, Page(items=[], next_page=2, error=page_error), []]
        )

        result = await _job(TILESETS, client, store, settings).run()

        assert result.state == CategoryState.DONE
        assert result.listing_error.value is page_error
        assert result.failure is None
        assert len(_read(store.path("tilesets.json"))) == 1


class TestArtifactSetupFailure:
    """Errors while preparing the artifact phase fail the category."""

    @pytest.mark.asyncio
    async def test_blocked_artifact_directory(self, style_client, store, settings):
        """A file where styles/ should be fails the category before any download."""
        store.ensure_dir()
        store.path("styles").write_text("not a directory", encoding="utf-8")

        result = await _job(STYLES, style_client, store, settings).run()

        assert result.state == CategoryState.FAILED
        assert isinstance(result.fatal_error, OSError)
        assert "Category styles failed" in str(result.failure)
        assert style_client.calls == []
        assert store.path("styles.json").exists()


class TestArtifactFailures:
    """Artifact failures are tallied, not fatal."""

    @pytest.mark.asyncio
    async def test_partial_failure_tally(self, style_client, store, settings):
        """One failed document leaves the category DONE with a tally."""
        style_client.failures = {"ck0001/style": [TransportError("HTTP 404", status=404)]}

        result = await _job(STYLES, style_client, store, settings, groups=(STYLE_DOCUMENTS,)).run()

        assert result.ok
        assert str(result.partial_error) == "1 of 6 artifacts failed"
        assert result.groups[0].schedule.summary() == "5/6"
        assert not store.path("styles", "ck0001.json").exists()

    @pytest.mark.asyncio
    async def test_throttled_document_is_retried(self, style_client, store, settings):
        """Throttled downloads succeed once the API lets them through."""
        style_client.failures = {"ck0002/style.draft": [ThrottleError(), ThrottleError()]}

        result = await _job(STYLES, style_client, store, settings, groups=(STYLE_DOCUMENTS,)).run()

        assert result.partial_error is None
        assert style_client.calls.count("ck0002/style.draft") == 3
        assert store.path("styles", "ck0002.draft.json").exists()


class TestDatasetsBackup:
    """Dataset features drain into one collection per dataset."""

    @pytest.mark.asyncio
    async def test_features_collection_written(self, store, settings):
        """Feature pages are merged into datasets/<id>.json."""
        client = FakeMapboxClient(
            datasets=[DATASETS_LIST],
            features={"cjds001": [FEATURES_PAGE_1["features"], FEATURES_PAGE_2["features"]]},
        )

        result = await _job(DATASETS, client, store, settings).run()

        collection = _read(store.path("datasets", "cjds001.json"))
        assert result.ok
        assert collection["type"] == "FeatureCollection"
        assert [f["id"] for f in collection["features"]] == ["f1", "f2"]

    @pytest.mark.asyncio
    async def test_features_refetched_every_run(self, store, settings):
        """Feature collections carry no timestamp, so they are never skipped."""
        client = FakeMapboxClient(datasets=[DATASETS_LIST], features={"cjds001": [[]]})

        await _job(DATASETS, client, store, settings).run()
        result = await _job(DATASETS, client, store, settings).run()

        assert client.calls == ["cjds001/features", "cjds001/features"]
        assert result.skipped == 0


class TestProgressOutput:
    """Progress marks are printed per page and per artifact."""

    @pytest.mark.asyncio
    async def test_listing_and_group_lines(self, style_client, store, settings):
        """Two page dots and the count, then a mark per document."""
        buffer = io.StringIO()
        reporter = ProgressReporter(console=Console(file=buffer, width=200), enabled=True)

        await _job(
            STYLES, style_client, store, settings, groups=(STYLE_DOCUMENTS,), reporter=reporter
        ).run()

        output = buffer.getvalue()
        assert "Styles List" in output
        assert "..3 ✔" in output
        assert "Style Documents" in output
        assert "......" in output

    @pytest.mark.asyncio
    async def test_failure_tally_on_line(self, style_client, store, settings):
        """A failed artifact ends the line with ⚠ and done/total."""
        style_client.failures = {"ck0003/style": [TransportError("HTTP 500", status=500)]}
        buffer = io.StringIO()
        reporter = ProgressReporter(console=Console(file=buffer, width=200), enabled=True)

        await _job(
            STYLES, style_client, store, settings, groups=(STYLE_DOCUMENTS,), reporter=reporter
        ).run()

        output = buffer.getvalue()
        assert "✖" in output
        assert "⚠ 5/6" in output

    @pytest.mark.asyncio
    async def test_recovered_listing_warns(self, store, settings):
        """A listing saved despite page errors ends with ⚠ instead of ✔."""
        page_error = TransportError("HTTP 502", status=502)
        client = FakeMapboxClient(
            tilesets=[TILESETS_LIST, Page(items=[], next_page=2, error=page_error), []]
        )
        buffer = io.StringIO()
        reporter = ProgressReporter(console=Console(file=buffer, width=200), enabled=True)

        await _job(TILESETS, client, store, settings, reporter=reporter).run()

        output = buffer.getvalue()
        assert "1 ⚠" in output
        assert "✔" not in output


class TestDownloadLogging:
    """Artifact downloads log with their item and artifact."""

    @pytest.mark.asyncio
    async def test_download_context(self, store, settings):
        """Records from a download carry category, phase, item and artifact."""
        buffer = io.StringIO()
        setup_logging(
            level=logging.DEBUG,
            json_format=True,
            handler=logging.StreamHandler(buffer),
            force=True,
        )
        client = FakeMapboxClient(styles=[STYLES_PAGE_1[:1]])

        await _job(STYLES, client, store, settings, groups=(STYLE_DOCUMENTS,)).run()

        entries = [json.loads(line) for line in buffer.getvalue().splitlines()]
        saved = [e for e in entries if e["message"] == "Saved ck0001.draft.json"]
        assert len(saved) == 1
        assert saved[0]["category"] == "styles"
        assert saved[0]["phase"] == "style-documents"
        assert saved[0]["item"] == "ck0001"
        assert saved[0]["artifact"] == "style.draft"
