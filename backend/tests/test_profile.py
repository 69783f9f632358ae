"""Unit tests for CSR subject profiles."""

import json

import pytest
from pydantic import ValidationError

from egs.crypto import profile as profile_module
from egs.crypto.profile import (
    CsrProfile,
    ProfileError,
    RdnTemplate,
    default_profile,
    get_csr_profile,
    load_csr_profile,
)
from egs.domain.states import EGSEnvironment


class TestDefaultProfile:
    """Tests for the built-in environment profiles."""

    @pytest.mark.parametrize(
        "environment,template_name",
        [
            ("production", "ZATCA-Code-Signing"),
            ("simulation", "PREZATCA-Code-Signing"),
            ("sandbox", "TSTZATCA-Code-Signing"),
        ],
    )
    def test_template_name_per_environment(self, environment, template_name):
        assert default_profile(environment).template_name == template_name

    def test_unknown_environment_raises(self):
        with pytest.raises(ValueError):
            default_profile("staging")

    def test_render_maps_identity_to_subject(self, unit_info):
        """Subject carries country, CRN, VAT name and a CN bound to the unit UUID."""
        rendered = default_profile(EGSEnvironment.SANDBOX).render(unit_info)

        assert rendered.subject == (
            ("C", "SA"),
            ("OU", "1010010000"),
            ("O", "Acme Foods"),
            ("CN", "EGS-Unit-11111111-1111-1111-1111-111111111111"),
        )

    def test_render_maps_identity_to_alt_names(self, unit_info):
        rendered = default_profile().render(unit_info)
        alt_names = dict(rendered.alt_names)

        assert alt_names["SN"] == "1-EGS|2-Unit|3-11111111-1111-1111-1111-111111111111"
        assert alt_names["UID"] == "300000000000003"
        assert alt_names["title"] == "1100"
        assert alt_names["registeredAddress"] == "5678 King Fahd Rd, 1234, Olaya, Riyadh 12345"
        assert alt_names["businessCategory"] == "Retail"


class TestCustomProfile:
    """Tests for injected profiles."""

    def test_unknown_placeholder_raises(self, unit_info):
        profile = CsrProfile(
            template_name="TSTZATCA-Code-Signing",
            subject=[RdnTemplate(attribute="CN", value="{branch_name}")],
        )
        with pytest.raises(ProfileError, match="CN"):
            profile.render(unit_info)

    def test_unsupported_attribute_raises(self, unit_info):
        profile = CsrProfile(
            template_name="TSTZATCA-Code-Signing",
            subject=[RdnTemplate(attribute="emailAddress", value="{uuid}")],
        )
        with pytest.raises(ProfileError, match="emailAddress"):
            profile.render(unit_info)

    @pytest.mark.parametrize(
        "value",
        ["{uuid.__class__}", "{location[city]}", "{}", "{0}"],
    )
    def test_only_plain_placeholders_are_rendered(self, value, unit_info):
        profile = CsrProfile(
            template_name="TSTZATCA-Code-Signing",
            subject=[RdnTemplate(attribute="CN", value=value)],
        )
        with pytest.raises(ProfileError, match="CN"):
            profile.render(unit_info)

    def test_blank_rendered_value_raises(self, unit_info):
        profile = CsrProfile(
            template_name="TSTZATCA-Code-Signing",
            subject=[RdnTemplate(attribute="businessCategory", value="{industry}")],
            parameters={"industry": "   "},
        )
        with pytest.raises(ProfileError, match="empty"):
            profile.render(unit_info)

    def test_identity_fields_take_precedence_over_parameters(self, unit_info):
        profile = CsrProfile(
            template_name="TSTZATCA-Code-Signing",
            subject=[RdnTemplate(attribute="O", value="{VAT_name}")],
            parameters={"VAT_name": "Shadowed"},
        )
        assert profile.render(unit_info).subject == (("O", "Acme Foods"),)

    def test_template_name_must_be_printable_string(self):
        with pytest.raises(ValidationError):
            CsrProfile(template_name="ZATCA_Code#Signing", subject=[])


class TestProfileLoading:
    """Tests for loading profiles from JSON and settings."""

    def test_load_from_json(self, tmp_path, unit_info):
        path = tmp_path / "profile.json"
        path.write_text(
            json.dumps(
                {
                    "template_name": "ZATCA-Code-Signing",
                    "subject": [
                        {"attribute": "C", "value": "SA"},
                        {"attribute": "CN", "value": "{uuid}"},
                    ],
                }
            )
        )

        profile = load_csr_profile(path)

        assert profile.template_name == "ZATCA-Code-Signing"
        assert profile.alt_names == []
        assert profile.render(unit_info).subject[1] == (
            "CN",
            "11111111-1111-1111-1111-111111111111",
        )

    def test_load_missing_file_raises(self, tmp_path):
        with pytest.raises(ProfileError, match="Failed to load"):
            load_csr_profile(tmp_path / "missing.json")

    def test_load_invalid_profile_raises(self, tmp_path):
        path = tmp_path / "profile.json"
        path.write_text(json.dumps({"subject": "not-a-list"}))

        with pytest.raises(ProfileError):
            load_csr_profile(path)

    def test_get_csr_profile_uses_environment(self, monkeypatch):
        monkeypatch.setattr(profile_module.settings, "EGS_CSR_PROFILE_PATH", None)
        monkeypatch.setattr(profile_module.settings, "EGS_ENVIRONMENT", "production")

        assert get_csr_profile().template_name == "ZATCA-Code-Signing"

    def test_get_csr_profile_prefers_file(self, monkeypatch, tmp_path):
        path = tmp_path / "profile.json"
        path.write_text(json.dumps(default_profile("simulation").model_dump()))
        monkeypatch.setattr(profile_module.settings, "EGS_CSR_PROFILE_PATH", str(path))
        monkeypatch.setattr(profile_module.settings, "EGS_ENVIRONMENT", "production")

        assert get_csr_profile().template_name == "PREZATCA-Code-Signing"
