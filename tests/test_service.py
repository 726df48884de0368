"""
Tests for service wiring: startup validation and the download name map.
"""

import threading

import pytest

from pdfshrink.config.validator import ConfigError


class TestBuildService:
    """Tests for build_service."""

    def test_valid_config_builds(self, make_service):
        service = make_service(request_timeout_seconds=10)

        assert service.orchestrator.config is service.config

    def test_unknown_policy_refused(self, make_service):
        with pytest.raises(ConfigError) as exc:
            make_service(not_smaller_policy="orignal")

        assert [i.field for i in exc.value.issues] == ["not_smaller_policy"]
        assert "orignal" in str(exc.value)

    def test_unknown_default_quality_refused(self, make_service):
        with pytest.raises(ConfigError) as exc:
            make_service(default_tier="ultra")

        assert [i.field for i in exc.value.issues] == ["default_tier"]

    def test_warnings_do_not_block(self, make_service):
        """A request timeout below the codec timeout is only a warning."""
        service = make_service(request_timeout_seconds=5, codec_timeout_seconds=120)

        assert service.config.request_timeout_seconds == 5


class TestDownloadNames:
    """Tests for the token → original filename map."""

    def test_remember_and_forget(self, make_service, scratch):
        service = make_service()
        handle = scratch.allocate()

        service.remember_download(handle.name, "report.pdf")
        assert service.original_name(handle.name) == "report.pdf"

        service.forget_download(handle.name)
        assert service.original_name(handle.name) is None

    def test_released_tokens_are_pruned(self, make_service, scratch):
        service = make_service()
        old, new = scratch.allocate(), scratch.allocate()
        service.remember_download(old.name, "old.pdf")
        old.release()

        service.remember_download(new.name, "new.pdf")

        assert service.original_name(old.name) is None
        assert service.original_name(new.name) == "new.pdf"

    def test_concurrent_requests(self, make_service, scratch):
        service = make_service()
        errors = []

        def worker(n):
            try:
                for i in range(200):
                    handle = scratch.allocate()
                    service.remember_download(handle.name, f"t{n}-{i}.pdf")
                    if i % 3 == 0:
                        handle.release()
                        service.forget_download(handle.name)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        live = scratch.live_handles()
        assert len(live) == 4 * 133
        assert all(service.original_name(h.name) is not None for h in live)
