"""Tests for target reconciliation."""

from models import HealthCheckSettings, PathMatchType, PangolinAPIError, TargetRequest
from resources.target import reconcile_target, reconcile_targets

ADDRESS = "web-svc.default.svc.cluster.local"


def request(port=80, path="/", ip=ADDRESS, site_id=7) -> TargetRequest:
    return TargetRequest(site_id=site_id, ip=ip, port=port, path=path)


class TestReconcileTargets:
    """Tests for reconcile_targets function."""

    def test_creates_missing_target(self, pangolin):
        active = reconcile_targets(pangolin, "42", [request()])

        assert len(active) == 1
        assert pangolin.count("create_target") == 1
        assert [t.identity for t in pangolin.targets_of("42")] == [(7, ADDRESS, 80)]

    def test_updates_matching_target_in_place(self, pangolin):
        existing = pangolin.add_target("42", 7, ADDRESS, 80)

        active = reconcile_targets(pangolin, "42", [request(path="/api")])

        assert active == [existing]
        assert pangolin.count("create_target") == 0
        assert pangolin.count("update_target") == 1
        assert pangolin.targets_of("42")[0].path == "/api"

    def test_deletes_stale_targets(self, pangolin):
        keep = pangolin.add_target("42", 7, ADDRESS, 80)
        old_port = pangolin.add_target("42", 7, ADDRESS, 8080)
        other_site = pangolin.add_target("42", 3, ADDRESS, 80)

        active = reconcile_targets(pangolin, "42", [request()])

        assert active == [keep]
        deleted = [arg for op, arg in pangolin.calls if op == "delete_target"]
        assert sorted(deleted) == sorted([str(old_port), str(other_site)])
        assert [t.id for t in pangolin.targets_of("42")] == [keep]

    def test_leaves_other_resources_alone(self, pangolin):
        foreign = pangolin.add_target("99", 7, ADDRESS, 8080)

        reconcile_targets(pangolin, "42", [request()])

        assert pangolin.targets_of("99")[0].id == foreign

    def test_stale_deletion_failure_is_tolerated(self, pangolin):
        pangolin.add_target("42", 7, ADDRESS, 8080)
        pangolin.failures["delete_target"] = PangolinAPIError("boom", 500)

        active = reconcile_targets(pangolin, "42", [request()])

        assert len(active) == 1
        assert pangolin.count("delete_target") == 1
        assert len(pangolin.targets_of("42")) == 2

    def test_duplicate_existing_targets_collapse_to_one(self, pangolin):
        first = pangolin.add_target("42", 7, ADDRESS, 80)
        second = pangolin.add_target("42", 7, ADDRESS, 80)

        active = reconcile_targets(pangolin, "42", [request()])

        assert active == [first]
        assert pangolin.calls[-1] == ("delete_target", str(second))

    def test_duplicate_desired_identity_is_skipped(self, pangolin):
        active = reconcile_targets(
            pangolin, "42", [request(path="/a"), request(path="/b")]
        )

        assert len(active) == 1
        assert pangolin.count("create_target") == 1
        assert pangolin.targets_of("42")[0].path == "/a"

    def test_several_paths_keep_each_other(self, pangolin):
        active = reconcile_targets(
            pangolin, "42", [request(port=80, path="/"), request(port=81, path="/api")]
        )
        again = reconcile_targets(
            pangolin, "42", [request(port=80, path="/"), request(port=81, path="/api")]
        )

        assert active == again
        assert pangolin.count("create_target") == 2
        assert pangolin.count("delete_target") == 0

    def test_idempotent(self, pangolin):
        reconcile_targets(pangolin, "42", [request()])
        reconcile_targets(pangolin, "42", [request()])

        assert pangolin.count("create_target") == 1
        assert pangolin.count("update_target") == 1
        assert len(pangolin.targets_of("42")) == 1


class TestReconcileTarget:
    """Tests for reconcile_target function."""

    def test_single_target(self, pangolin):
        health_check = HealthCheckSettings(enabled=True, path="/healthz")

        target_id = reconcile_target(
            pangolin,
            "42",
            pangolin.site,
            ADDRESS,
            80,
            "/",
            PathMatchType.EXACT,
            health_check,
        )

        _, sent = pangolin.calls[-1][1]
        assert pangolin.targets_of("42")[0].id == target_id
        assert sent.path_match_type == PathMatchType.EXACT
        assert sent.health_check == health_check
