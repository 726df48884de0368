"""
Tests for configuration loading and validation.
"""

import json
from dataclasses import FrozenInstanceError
from pathlib import Path
from unittest.mock import patch

import pytest

from pdfshrink.config.loader import MB, CompressorConfig, load_config
from pdfshrink.config.validator import has_errors, validate_config


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults(self):
        config = load_config(env={})

        assert config.max_upload_bytes == 100 * MB
        assert config.codec_timeout_seconds == 120.0
        assert config.strategy == "best_of"
        assert config.default_tier == "medium"
        assert config.not_smaller_policy == "original"
        assert config.release_grace_seconds == 300.0
        assert config.response_mode == "inline"

    def test_individual_vars(self):
        config = load_config(env={
            "PDFSHRINK_MAX_UPLOAD_MB": "50",
            "PDFSHRINK_STRATEGY": "single",
            "PDFSHRINK_STRICT_QUALITY": "true",
            "PDFSHRINK_SCRATCH_DIR": "/var/tmp/shrink",
            "PDFSHRINK_CORS_ORIGINS": "https://a.example, https://b.example",
        })

        assert config.max_upload_bytes == 50 * MB
        assert config.strategy == "single"
        assert config.strict_tier is True
        assert config.scratch_dir == Path("/var/tmp/shrink")
        assert config.cors_origins == ("https://a.example", "https://b.example")

    def test_master_json(self):
        config = load_config(env={
            "PDFSHRINK_CONFIG": json.dumps({
                "strategy": "single",
                "max_upload_mb": 10,
                "parallel_presets": True,
            }),
        })

        assert config.strategy == "single"
        assert config.max_upload_bytes == 10 * MB
        assert config.parallel_presets is True

    def test_individual_overrides_master(self):
        config = load_config(env={
            "PDFSHRINK_CONFIG": json.dumps({"strategy": "single"}),
            "PDFSHRINK_STRATEGY": "best_of",
        })

        assert config.strategy == "best_of"

    def test_bad_values_ignored(self):
        config = load_config(env={
            "PDFSHRINK_CODEC_TIMEOUT": "soon",
            "PDFSHRINK_CONFIG": "{not json",
        })

        assert config.codec_timeout_seconds == 120.0

    def test_frozen(self):
        config = CompressorConfig()

        with pytest.raises(FrozenInstanceError):
            config.strategy = "single"

    def test_with_overrides(self):
        config = CompressorConfig().with_overrides(strategy="single")

        assert config.strategy == "single"
        assert CompressorConfig().strategy == "best_of"

    def test_to_dict_is_json_safe(self):
        data = CompressorConfig(presets_file=Path("p.yaml")).to_dict()

        json.dumps(data)
        assert data["presets_file"] == "p.yaml"


class TestValidateConfig:
    """Tests for validate_config."""

    def test_valid_mock_config(self, tmp_path):
        config = CompressorConfig(scratch_dir=tmp_path, mock_codecs=True)

        assert validate_config(config) == []

    def test_unknown_values(self, tmp_path):
        config = CompressorConfig(
            scratch_dir=tmp_path,
            mock_codecs=True,
            strategy="fastest",
            default_tier="ultra",
            not_smaller_policy="whatever",
            response_mode="stream",
        )

        fields = {i.field for i in validate_config(config)}

        assert {"strategy", "default_tier", "not_smaller_policy", "response_mode"} <= fields

    def test_short_request_timeout_is_warning(self, tmp_path):
        config = CompressorConfig(
            scratch_dir=tmp_path,
            mock_codecs=True,
            request_timeout_seconds=10,
        )

        issues = validate_config(config)

        assert [i.field for i in issues] == ["request_timeout_seconds"]
        assert not has_errors(issues)

    def test_missing_presets_file(self, tmp_path):
        config = CompressorConfig(
            scratch_dir=tmp_path,
            mock_codecs=True,
            presets_file=tmp_path / "missing.yaml",
        )

        assert has_errors(validate_config(config))

    def test_missing_ghostscript_is_warning(self, tmp_path):
        config = CompressorConfig(scratch_dir=tmp_path, gs_binary="no-such-gs")

        with patch("shutil.which", return_value=None):
            issues = validate_config(config)

        assert [i.field for i in issues] == ["gs_binary"]
        assert issues[0].level == "warning"
