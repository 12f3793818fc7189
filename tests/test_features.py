"""Tests for the feature toggle system."""

import pytest
from django.http import Http404, HttpRequest, HttpResponse
from django.test import RequestFactory, override_settings
from django.views import View

from django_backstage.context_processors import backstage_features
from django_backstage.features import FeatureRequiredMixin, is_feature_enabled, require_feature
from django_backstage.settings import get_config

ALL_FEATURES = ("registration", "merchandise", "public_ui")


class TestFeaturesConfigDefaults:
    """All features are enabled by default."""

    def test_all_features_enabled_by_default(self) -> None:
        config = get_config().features
        for feature in ALL_FEATURES:
            assert getattr(config, f"{feature}_enabled") is True

    def test_features_config_is_frozen(self) -> None:
        config = get_config().features
        with pytest.raises(AttributeError):
            config.registration_enabled = False  # type: ignore[misc]


class TestIsFeatureEnabled:
    """Tests for the ``is_feature_enabled`` helper."""

    @pytest.mark.parametrize("feature", ALL_FEATURES)
    def test_returns_true_by_default(self, feature: str) -> None:
        assert is_feature_enabled(feature) is True

    @pytest.mark.parametrize("feature", ALL_FEATURES)
    def test_returns_false_when_disabled(self, feature: str) -> None:
        with override_settings(DJANGO_BACKSTAGE={"features": {f"{feature}_enabled": False}}):
            assert is_feature_enabled(feature) is False

    def test_unknown_feature_raises_value_error(self) -> None:
        with pytest.raises(ValueError, match="Unknown feature"):
            is_feature_enabled("newsletter")

    @pytest.mark.parametrize("feature", ["registration", "merchandise"])
    def test_public_ui_disabled_overrides_public_features(self, feature: str) -> None:
        with override_settings(DJANGO_BACKSTAGE={"features": {"public_ui_enabled": False}}):
            assert is_feature_enabled(feature) is False


class TestRequireFeature:
    def test_passes_when_enabled(self) -> None:
        require_feature("registration")

    def test_raises_404_when_disabled(self) -> None:
        with override_settings(DJANGO_BACKSTAGE={"features": {"merchandise_enabled": False}}):
            with pytest.raises(Http404, match="merchandise"):
                require_feature("merchandise")


class _GuardedView(FeatureRequiredMixin, View):
    required_feature = ("registration", "public_ui")

    def get(self, request: HttpRequest) -> HttpResponse:
        return HttpResponse("ok")


class _UnguardedView(FeatureRequiredMixin, View):
    def get(self, request: HttpRequest) -> HttpResponse:
        return HttpResponse("ok")


class TestFeatureRequiredMixin:
    def test_allows_request_when_all_features_enabled(self, rf: RequestFactory) -> None:
        response = _GuardedView.as_view()(rf.get("/"))
        assert response.status_code == 200

    def test_blocks_request_when_any_feature_disabled(self, rf: RequestFactory) -> None:
        with override_settings(DJANGO_BACKSTAGE={"features": {"registration_enabled": False}}):
            with pytest.raises(Http404):
                _GuardedView.as_view()(rf.get("/"))

    def test_empty_required_feature_is_a_no_op(self, rf: RequestFactory) -> None:
        with override_settings(DJANGO_BACKSTAGE={"features": {"public_ui_enabled": False}}):
            response = _UnguardedView.as_view()(rf.get("/"))
        assert response.status_code == 200


class TestContextProcessor:
    def test_exposes_all_flags(self, rf: RequestFactory) -> None:
        context = backstage_features(rf.get("/"))
        assert context == {
            "backstage_features": {
                "registration_enabled": True,
                "merchandise_enabled": True,
                "public_ui_enabled": True,
            }
        }

    def test_reflects_master_switch(self, rf: RequestFactory) -> None:
        with override_settings(DJANGO_BACKSTAGE={"features": {"public_ui_enabled": False}}):
            flags = backstage_features(rf.get("/"))["backstage_features"]
        assert flags == {
            "registration_enabled": False,
            "merchandise_enabled": False,
            "public_ui_enabled": False,
        }
