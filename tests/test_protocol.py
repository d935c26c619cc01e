"""Tests for the WiZ wire protocol: identifiers, requests, replies, state."""

from __future__ import annotations

import json

import pytest

from wizlight.lan.errors import MalformedResponse
from wizlight.lan.protocol import (
    REGISTRATION_PARAMS,
    Method,
    PilotState,
    SystemConfig,
    WizRequest,
    WizResponse,
    format_mac,
    normalize_mac,
)


# ---------------------------------------------------------------------------
# Identifiers
# ---------------------------------------------------------------------------

class TestMacHelpers:
    @pytest.mark.parametrize("raw", [
        "aabbccddeeff",
        "AABBCCDDEEFF",
        "aa:bb:cc:dd:ee:ff",
        "AA-BB-CC-DD-EE-FF",
        " aabb.ccdd.eeff ",
    ])
    def test_normalize(self, raw):
        assert normalize_mac(raw) == "aabbccddeeff"

    @pytest.mark.parametrize("raw", ["", "aabbcc", "aabbccddeeff00", "gghhiijjkkll", None])
    def test_normalize_rejects(self, raw):
        with pytest.raises(ValueError):
            normalize_mac(raw)

    def test_format(self):
        assert format_mac("aabbccddeeff") == "aa:bb:cc:dd:ee:ff"

    def test_format_passes_odd_input_through(self):
        assert format_mac("abc") == "abc"


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class TestWizRequest:
    def test_registration_payload(self):
        body = json.loads(WizRequest.registration().to_bytes())
        assert body["method"] == "registration"
        assert body["params"] == REGISTRATION_PARAMS
        assert body["params"]["register"] is False

    def test_registration_params_not_shared(self):
        req = WizRequest.registration()
        req.params["id"] = "2"
        assert REGISTRATION_PARAMS["id"] == "1"

    def test_get_pilot_has_empty_params(self):
        body = json.loads(WizRequest.get_pilot().to_bytes())
        assert body == {"method": "getPilot", "params": {}}

    def test_get_system_config(self):
        body = json.loads(WizRequest.get_system_config().to_bytes())
        assert body["method"] == "getSystemConfig"

    def test_set_pilot(self):
        body = json.loads(WizRequest.set_pilot({"state": False}).to_bytes())
        assert body == {"method": "setPilot", "params": {"state": False}}

    def test_accepts_plain_string_method(self):
        assert WizRequest("getPilot").to_dict()["method"] == Method.GET_PILOT.value

    def test_unknown_method_rejected(self):
        with pytest.raises(ValueError):
            WizRequest("reboot").to_bytes()


# ---------------------------------------------------------------------------
# Replies
# ---------------------------------------------------------------------------

class TestWizResponse:
    def test_parse_result(self):
        data = b'{"method":"getPilot","env":"pro","result":{"mac":"AABBCCDDEEFF","state":true}}'
        reply = WizResponse.from_bytes(data, source="192.168.1.50")
        assert reply.source == "192.168.1.50"
        assert reply.method == "getPilot"
        assert reply.mac == "aabbccddeeff"
        assert reply.error is None

    def test_ack_success(self):
        reply = WizResponse.from_bytes(b'{"method":"setPilot","result":{"success":true}}')
        assert reply.success is True

    def test_ack_without_flag_is_not_success(self):
        reply = WizResponse.from_bytes(b'{"method":"setPilot","result":{}}')
        assert reply.success is False

    def test_truthy_non_bool_is_not_success(self):
        reply = WizResponse.from_bytes(b'{"result":{"success":"yes"}}')
        assert reply.success is False

    def test_error_envelope(self):
        reply = WizResponse.from_bytes(b'{"method":"setPilot","error":{"code":-32600,"message":"Invalid"}}')
        assert reply.success is False
        assert reply.error == {"code": -32600, "message": "Invalid"}
        assert reply.mac is None

    @pytest.mark.parametrize("data", [b"not json", b"\xff\xfe", b"[1,2,3]", b'"text"', b""])
    def test_malformed(self, data):
        with pytest.raises(MalformedResponse):
            WizResponse.from_bytes(data)

    def test_non_dict_result_ignored(self):
        reply = WizResponse.from_bytes(b'{"result":"ok"}')
        assert reply.result == {}
        assert reply.mac is None


# ---------------------------------------------------------------------------
# State snapshots
# ---------------------------------------------------------------------------

class TestPilotState:
    def test_white(self):
        pilot = PilotState.from_result({"state": True, "dimming": 40, "temp": 2700, "mac": "AABBCCDDEEFF"})
        assert pilot.state is True
        assert pilot.dimming == 40
        assert pilot.temp == 2700
        assert pilot.color is None
        assert pilot.mac == "aabbccddeeff"
        assert pilot.describe() == "on 40% 2700K"

    def test_color(self):
        pilot = PilotState.from_result({"state": True, "dimming": 80, "r": 255, "g": 0, "b": 10})
        assert pilot.color == (255, 0, 10)
        assert pilot.describe() == "on 80% rgb(255,0,10)"

    def test_zero_temp_means_no_temp(self):
        pilot = PilotState.from_result({"state": True, "dimming": 80, "temp": 0})
        assert pilot.temp is None

    def test_off(self):
        pilot = PilotState.from_result({"state": False, "dimming": 40, "temp": 2700})
        assert pilot.describe() == "off"

    def test_missing_fields(self):
        pilot = PilotState.from_result({})
        assert pilot.state is False
        assert pilot.dimming is None


class TestSystemConfig:
    def test_parse(self):
        cfg = SystemConfig.from_result({"mac": "AABBCCDDEEFF", "moduleName": "ESP01_SHRGB1C_31", "fwVersion": "1.25.0"})
        assert cfg.mac == "aabbccddeeff"
        assert cfg.module_name == "ESP01_SHRGB1C_31"
        assert cfg.fw_version == "1.25.0"

    def test_defaults(self):
        cfg = SystemConfig.from_result({})
        assert cfg.mac is None
        assert cfg.module_name == "unknown"
        assert cfg.fw_version == "?"
