from __future__ import annotations

import json
import math
import textwrap

import numpy as np
import pytest

from fiducial_odom import FiducialOdomConfig, load_fiducial_odom_config
from fiducial_odom.config_yaml import fiducial_odom_config_from_dict
from fiducial_odom.runtime_wiring import build_transform_buffer
from fiducial_odom.transforms import R_from_quat


def test_defaults_match_node_parameters() -> None:
    cfg = FiducialOdomConfig().validate()

    assert cfg.camera_frame == "camera_link"
    assert cfg.footprint_frame == "footprint"
    assert cfg.bin_frame == "bin_footprint"
    assert cfg.odom_frame == "odom"
    assert float(cfg.rate_hz) == pytest.approx(5.0)
    assert cfg.debug_logging is False
    assert float(cfg.pose_covariance_diag) == pytest.approx(0.1)
    assert float(cfg.twist_covariance_diag) == pytest.approx(0.1)
    assert cfg.output.jsonl_path is None


def test_load_config_yaml_partial_override(tmp_path) -> None:
    p = tmp_path / "cfg.yaml"
    p.write_text(
        textwrap.dedent(
            """
            odom_frame: map
            rate_hz: 10
            sensor_order: [kinect, rear_cam]
            marker:
              size_m: 0.15
              marker_ids: [3, 4]
            sources:
              kinect:
                device: 2
                frame_id: kinect_link
                calib_json: calib.json
            transforms:
              - parent: footprint
                child: kinect_link
                translation: [0.3, 0.0, 0.5]
              - parent: map
                child: bin_footprint
                translation: [2.0, 0.0, 0.0]
                rotation: [0.0, 0.0, 0.0, 1.0]
            """
        ).strip()
        + "\n",
        encoding="utf-8",
    )

    cfg = load_fiducial_odom_config(p)

    assert cfg.odom_frame == "map"
    assert float(cfg.rate_hz) == pytest.approx(10.0)
    assert cfg.sensor_order == ("kinect", "rear_cam")
    assert cfg.marker.marker_ids == (3, 4)
    assert float(cfg.marker.size_m) == pytest.approx(0.15)
    assert cfg.sources["kinect"].device == 2
    assert cfg.sources["kinect"].frame_id == "kinect_link"
    assert len(cfg.transforms) == 2
    assert cfg.transforms[0].rotation == (0.0, 0.0, 0.0, 1.0)

    # 未覆盖的字段仍应使用默认值
    assert cfg.footprint_frame == "footprint"
    assert cfg.marker.dictionary == "DICT_4X4_50"

    buf = build_transform_buffer(cfg)
    assert np.allclose(buf.resolve("kinect_link", "footprint", 0.0).translation, [0.3, 0.0, 0.5])


def test_load_config_json(tmp_path) -> None:
    p = tmp_path / "cfg.json"
    p.write_text(json.dumps({"debug_logging": True, "output": {"jsonl_path": "out/odom.jsonl"}}), encoding="utf-8")

    cfg = load_fiducial_odom_config(p)

    assert cfg.debug_logging is True
    assert cfg.output.jsonl_path == "out/odom.jsonl"


def test_unknown_key_raises(tmp_path) -> None:
    p = tmp_path / "cfg.yaml"
    p.write_text("unknown_top_level: 1\n", encoding="utf-8")

    with pytest.raises(KeyError):
        _ = load_fiducial_odom_config(p)


def test_unknown_nested_key_raises() -> None:
    with pytest.raises(KeyError):
        fiducial_odom_config_from_dict({"marker": {"sizee_m": 0.1}})


def test_transform_without_child_raises() -> None:
    with pytest.raises(KeyError):
        fiducial_odom_config_from_dict({"transforms": [{"parent": "odom"}]})


def test_transform_rotation_can_be_given_as_rpy() -> None:
    cfg = fiducial_odom_config_from_dict(
        {"transforms": [{"parent": "footprint", "child": "rear_cam_link", "rpy": [0.0, 0.0, math.pi / 2]}]}
    )

    assert cfg.transforms[0].rpy == (0.0, 0.0, math.pi / 2)

    tf = build_transform_buffer(cfg).resolve("rear_cam_link", "footprint", 0.0)
    Rz = np.array([[0.0, -1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])
    assert np.allclose(R_from_quat(tf.rotation), Rz, atol=1e-12)


@pytest.mark.parametrize(
    "data",
    [
        {"odom_frame": ""},
        {"bin_frame": "/bin_footprint"},
        {"rate_hz": 0},
        {"sensor_order": []},
        {"sensor_order": ["kinect", "kinect"]},
        {"pose_covariance_diag": -1.0},
        {"marker": {"size_m": 0.0}},
        {"transforms": [{"parent": "a", "child": "b", "rpy": [0.0, 0.0]}]},
        {"transforms": [{"parent": "a", "child": "b", "rotation": [0.0, 0.0, 1.0, 0.0], "rpy": [0.0, 0.0, 1.0]}]},
    ],
)
def test_invalid_values_are_rejected(data) -> None:
    with pytest.raises(ValueError):
        fiducial_odom_config_from_dict(data)


def test_unsupported_suffix_raises(tmp_path) -> None:
    p = tmp_path / "cfg.toml"
    p.write_text("rate_hz = 5\n", encoding="utf-8")

    with pytest.raises(RuntimeError):
        load_fiducial_odom_config(p)
