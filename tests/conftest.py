import pytest

from pipeline_kp import DesignSpecSegment, PupConfig, RouteProjector, StringingInventory, Waypoint


@pytest.fixture
def leduc_waypoints():
    return [
        Waypoint(lat=53.5461, lon=-113.4938, kp=0, name="Edmonton Hub"),
        Waypoint(lat=53.2000, lon=-113.6500, kp=42000, name="Leduc Area"),
    ]


@pytest.fixture
def equator_projector():
    """One degree of longitude along the equator, chainage = true length in metres."""
    return RouteProjector(
        [
            Waypoint(lat=0.0, lon=0.0, kp=0, name="West"),
            Waypoint(lat=0.0, lon=1.0, kp=111195, name="East"),
        ]
    )


@pytest.fixture
def design_specs():
    return [
        DesignSpecSegment(
            station_start_metres=0,
            station_end_metres=2000,
            min_wall_thickness_mm=9.5,
            min_grade="X70",
            reason="a road crossing",
        ),
        DesignSpecSegment(
            station_start_metres=5000,
            station_end_metres=5500,
            min_wall_thickness_mm=12.7,
            min_grade="X70 heavy wall",
            reason="a river crossing",
        ),
    ]


@pytest.fixture
def pup_config():
    return [
        PupConfig(pipe_dia_min_inch=4, pipe_dia_max_inch=12, min_usable_length_m=1.0),
        PupConfig(pipe_dia_min_inch=16, pipe_dia_max_inch=36, min_usable_length_m=1.5),
    ]


@pytest.fixture
def inventory(design_specs, pup_config):
    return StringingInventory(design_specs=design_specs, pup_config=pup_config)


@pytest.fixture
def j100(inventory):
    return inventory.add_joint(
        joint_number="J-100",
        heat_number="H-55821",
        station_kp="3+120",
        pipe_size='24"',
        wall_thickness_mm=9.5,
        coating_type="FBE",
        length_metres=12.19,
    )
