"""Tests for tabby.grouping.grouper — route partitioning, conflicts, ISR."""

from pathlib import Path

import pytest

from tabby._errors import ConfigError, ConflictError, IsrError, RuntimeVersionError
from tabby.grouping.grouper import IsrDescriptor, RouteGrouper
from tabby.observability import BuildCollector, BuildEvent, IsrIgnored
from tabby.routes import make_route

HOST = (3, 12)


def _ids(grouping) -> list[list[str]]:
    return [[route.id for route in group.routes] for group in grouping.groups]


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------


class TestGrouping:
    """Routes with equal config hashes share a group."""

    def test_empty(self) -> None:
        grouping = RouteGrouper(None, HOST).group([])
        assert grouping.groups == ()
        assert grouping.isr == {}
        assert grouping.ignored_isr == ()

    def test_equal_configs_share_a_group(self) -> None:
        routes = [
            make_route("/a"),
            make_route("/b"),
            make_route("/c", config={"runtime": "python3.11"}),
        ]
        grouping = RouteGrouper(None, HOST).group(routes)
        assert _ids(grouping) == [["/a", "/b"], ["/c"]]
        assert [g.index for g in grouping.groups] == [0, 1]

    def test_group_config_is_first_route_config(self) -> None:
        grouping = RouteGrouper(None, HOST).group([make_route("/a", config={"memory": 512})])
        (group,) = grouping.groups
        assert group.config.runtime == "python3.12"
        assert group.config.memory == 512

    def test_defaults_apply_to_every_route(self) -> None:
        routes = [make_route("/a"), make_route("/b", config={"memory": 1024})]
        grouping = RouteGrouper({"memory": 1024}, HOST).group(routes)
        assert _ids(grouping) == [["/a", "/b"]]

    def test_deterministic(self) -> None:
        routes = [
            make_route("/a"),
            make_route("/b", config={"memory": 512}),
            make_route("/c"),
            make_route("/d", config={"split": True}),
        ]
        first = RouteGrouper(None, HOST).group(routes)
        second = RouteGrouper(None, HOST).group(routes)
        assert _ids(first) == _ids(second)
        assert [g.index for g in first.groups] == [g.index for g in second.groups]

    def test_accepts_any_iterable(self) -> None:
        grouping = RouteGrouper(None, HOST).group(iter([make_route("/a")]))
        assert _ids(grouping) == [["/a"]]

    def test_unsupported_host_without_runtime(self) -> None:
        with pytest.raises(RuntimeVersionError):
            RouteGrouper(None, (3, 8)).group([make_route("/a")])

    def test_invalid_route_config(self) -> None:
        with pytest.raises(ConfigError, match="Unknown config option"):
            RouteGrouper(None, HOST).group([make_route("/a", config={"cpu": 2})])


# ---------------------------------------------------------------------------
# Split
# ---------------------------------------------------------------------------


class TestSplit:
    """Routes asking to split never share a group."""

    def test_split_routes_are_singletons(self) -> None:
        routes = [
            make_route("/a", config={"split": True}),
            make_route("/b", config={"split": True}),
            make_route("/c"),
        ]
        grouping = RouteGrouper(None, HOST).group(routes)
        assert _ids(grouping) == [["/a"], ["/b"], ["/c"]]

    def test_split_from_defaults(self) -> None:
        routes = [make_route("/a"), make_route("/b")]
        grouping = RouteGrouper({"split": True}, HOST).group(routes)
        assert _ids(grouping) == [["/a"], ["/b"]]

    def test_unsplit_route_does_not_join_split_group(self) -> None:
        routes = [make_route("/a", config={"split": True}), make_route("/b")]
        grouping = RouteGrouper(None, HOST).group(routes)
        assert len(grouping.groups) == 2


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------


class TestConflicts:
    """Routes with the same pattern need compatible configs."""

    def test_conflict_names_both_routes(self) -> None:
        routes = [
            make_route("/(app)/about"),
            make_route("/(site)/about", config={"memory": 2048}),
        ]
        with pytest.raises(ConflictError) as exc_info:
            RouteGrouper(None, HOST).group(routes)
        message = str(exc_info.value)
        assert "/(app)/about" in message
        assert "/(site)/about" in message
        assert "^/about/?$" in message

    def test_conflict_in_either_order(self) -> None:
        a = make_route("/blog/{slug}")
        b = make_route("/blog/{id}", config={"runtime": "python3.11"})
        for routes in ([a, b], [b, a]):
            with pytest.raises(ConflictError):
                RouteGrouper(None, HOST).group(routes)

    def test_same_pattern_equal_config_merges(self) -> None:
        routes = [make_route("/blog/{slug}"), make_route("/blog/{id}")]
        grouping = RouteGrouper(None, HOST).group(routes)
        assert _ids(grouping) == [["/blog/{slug}", "/blog/{id}"]]

    def test_prerendered_routes_never_conflict(self) -> None:
        routes = [
            make_route("/(app)/about"),
            make_route("/(site)/about", prerender=True, config={"memory": 2048}),
        ]
        grouping = RouteGrouper(None, HOST).group(routes)
        assert _ids(grouping) == [["/(app)/about"]]


# ---------------------------------------------------------------------------
# ISR
# ---------------------------------------------------------------------------


class TestIsr:
    """ISR descriptors, numbering, and validation."""

    def test_descriptor(self) -> None:
        route = make_route("/feed", config={"isr": {"allowQuery": ["page"]}})
        grouping = RouteGrouper(None, HOST).group([route])
        assert grouping.isr == {
            "/feed": IsrDescriptor(
                expiration=False,
                bypass_token=None,
                allow_query=("__pathname", "page"),
                group=1,
                pass_query=True,
            ),
        }

    def test_numbering_follows_encounter_order(self) -> None:
        routes = [
            make_route("/a", config={"isr": {"expiration": 60}}),
            make_route("/b"),
            make_route("/c", config={"isr": True}),
        ]
        grouping = RouteGrouper(None, HOST).group(routes)
        assert list(grouping.isr) == ["/a", "/c"]
        assert [d.group for d in grouping.isr.values()] == [1, 2]
        assert grouping.isr["/c"].allow_query == ("__pathname",)

    def test_isr_routes_separate_from_non_isr(self) -> None:
        routes = [make_route("/a"), make_route("/b", config={"isr": True})]
        grouping = RouteGrouper(None, HOST).group(routes)
        assert _ids(grouping) == [["/a"], ["/b"]]

    def test_reserved_query_param(self, tmp_path: Path) -> None:
        route = make_route(
            "/feed",
            config={"isr": {"allow_query": ["__pathname"]}},
            source=tmp_path / "routes" / "feed.py",
        )
        with pytest.raises(IsrError, match="reserved query parameter") as exc_info:
            RouteGrouper(None, HOST).group([route])
        assert "feed.py" in str(exc_info.value)

    def test_non_python_runtime(self) -> None:
        route = make_route("/feed", config={"runtime": "edge", "isr": True})
        with pytest.raises(IsrError, match="Python runtime"):
            RouteGrouper(None, HOST).group([route])

    def test_error_names_route_directory(self, tmp_path: Path) -> None:
        route = make_route("/feed", config={"runtime": "edge", "isr": True})
        grouper = RouteGrouper(None, HOST, routes_dir=tmp_path / "routes")
        with pytest.raises(IsrError) as exc_info:
            grouper.group([route])
        assert "routes" in str(exc_info.value)

    def test_prerendered_isr_ignored(self) -> None:
        collector = BuildCollector()
        routes = [
            make_route("/about", prerender=True, config={"isr": True}),
            make_route("/feed", config={"isr": True}),
        ]
        grouping = RouteGrouper(None, HOST, collector=collector).group(routes)
        assert grouping.ignored_isr == ("/about",)
        assert list(grouping.isr) == ["/feed"]
        assert grouping.isr["/feed"].group == 1
        (event,) = collector.log.query(event_type=IsrIgnored)
        assert event.route_id == "/about"

    def test_prerendered_isr_not_validated(self) -> None:
        route = make_route("/about", prerender=True, config={"runtime": "edge", "isr": True})
        grouping = RouteGrouper(None, HOST).group([route])
        assert grouping.groups == ()
        assert grouping.ignored_isr == ("/about",)


# ---------------------------------------------------------------------------
# Prerendering
# ---------------------------------------------------------------------------


class TestPrerendered:
    """Prerendered routes are skipped entirely."""

    def test_skipped(self) -> None:
        routes = [make_route("/about", prerender=True), make_route("/feed")]
        grouping = RouteGrouper(None, HOST).group(routes)
        assert _ids(grouping) == [["/feed"]]

    def test_auto(self) -> None:
        routes = [
            make_route("/about", prerender="auto"),
            make_route("/blog/{slug}", prerender="auto"),
        ]
        grouping = RouteGrouper(None, HOST).group(routes)
        assert _ids(grouping) == [["/blog/{slug}"]]


class TestObservability:
    """The grouper records one group event per pass."""

    def test_group_event(self) -> None:
        collector = BuildCollector()
        RouteGrouper(None, HOST, collector=collector).group(
            [make_route("/a"), make_route("/b", config={"memory": 512})],
        )
        (event,) = collector.log.query(event_type=BuildEvent)
        assert event.kind == "group"
        assert event.source == "2 routes"
        assert event.target == "2 groups"
