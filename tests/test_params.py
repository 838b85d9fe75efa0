"""Parameter extraction and stripping."""

from sugester.params import extract_params, has_parametric_token, strip_params


def test_extracts_aperture_and_focal_range():
    """Aperture keeps its f/ prefix; a zoom range is overwritten by the single-length rule."""

    params = extract_params("70-200mm f/2.8")

    assert params["params.aperture"] == "f/2.8"
    # "200mm" also satisfies the single focal-length rule, which runs later.
    assert params["params.focal_length_min"] == 200
    assert params["params.focal_length_max"] == 200


def test_single_focal_length_sets_both_bounds():
    """A prime lens length becomes min == max."""

    params = extract_params("obiektyw 50mm")

    assert params["params.focal_length_min"] == 50
    assert params["params.focal_length_max"] == 50


def test_filter_diameter_needs_filter_context():
    """Two-digit millimetres only count as a filter size next to a filter word."""

    assert "params.filter_diameter" not in extract_params("obiektyw 52mm")

    params = extract_params("filtr uv 52mm")
    assert params["params.filter_diameter"] == 52
    # The focal rule fires on the same token; both fields are written.
    assert params["params.focal_length_min"] == 52


def test_video_sensor_and_mount():
    """Independent extractors write disjoint fields on one text."""

    params = extract_params("kamera 4k 120fps full frame e-mount")

    assert params["params.video_resolution"] == "4K"
    assert params["params.video_fps"] == 120
    assert params["params.sensor_size"] == "Full Frame"
    assert params["params.mount"] == "E-MOUNT"


def test_apsc_and_megapixels():
    """Sensor size variants and megapixels parse to canonical values."""

    params = extract_params("aparat aps-c 24.2 MP")

    assert params["params.sensor_size"] == "APS-C"
    assert params["params.megapixels"] == 24.2


def test_no_params_in_plain_text():
    """Plain words contribute nothing."""

    assert extract_params("statyw podróżny") == {}
    assert extract_params(None) == {}


def test_strip_params_leaves_no_parameter_residue():
    """All parameter spans are removed, megapixels included."""

    assert strip_params("70-200mm f/2.8 24MP") == ""
    assert strip_params("sigma 35mm f/1.4 art") == "sigma art"


def test_parametric_detection():
    """Only structured tokens make a query parametric."""

    assert has_parametric_token("obiektyw 85mm")
    assert has_parametric_token("f/1.8")
    assert has_parametric_token("adapter RF")
    assert not has_parametric_token("statyw carbon")
