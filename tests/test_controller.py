"""
Tests for the SliceViewController: event handling, cursor readout,
contours, axis ranges, cube replacement and 3D view linking.
"""

import logging

import numpy as np
import pytest

from linecube.controller import (
    BeamOverlay,
    ContourEdit,
    CursorMove,
    FrameChange,
    IntegrationToggle,
    PlaneChange,
    RangeChange,
    Reset,
    SliceViewController,
    ViewDisposedError,
    Zoom,
)
from linecube.cube import ARCSEC_TO_RAD, InvalidCubeError
from linecube.sync import ProjectionState

ARCSEC = ARCSEC_TO_RAD


@pytest.fixture
def controller(line_cube, recording_surface):
    controller = SliceViewController(line_cube, recording_surface)
    controller.start()
    return controller


class TestLifecycle:
    """Test start, dispatch and disposal."""

    def test_start(self, controller, recording_surface):
        """Test that the centre plane is drawn on start."""
        assert controller.state == "ready"
        assert controller.plane == 10
        assert controller.velocity == pytest.approx(0.0)
        assert len(recording_surface.renders) == 1
        assert recording_surface.bounds == (
            -7 * ARCSEC, 7 * ARCSEC, -5 * ARCSEC, 5 * ARCSEC
        )

    def test_first_event_starts(self, line_cube, recording_surface):
        """Test that an event on an uninitialised view starts it."""
        controller = SliceViewController(line_cube, recording_surface)
        assert controller.state == "uninitialised"

        controller.handle(PlaneChange(velocity=3.4))
        assert controller.state == "ready"
        assert len(recording_surface.renders) == 2

    def test_dispose(self, controller, recording_surface):
        """Test that a disposed view rejects events."""
        controller.dispose()
        controller.dispose()

        assert recording_surface.closed
        with pytest.raises(ViewDisposedError):
            controller.handle(Reset())
        with pytest.raises(ViewDisposedError):
            controller.replace_cube(controller.cube)

    def test_unknown_event(self, controller):
        with pytest.raises(ValueError):
            controller.handle(object())

    def test_rejects_non_cube(self):
        with pytest.raises(InvalidCubeError):
            SliceViewController(np.zeros((2, 2, 2)))

    def test_unknown_parameter_warns(self, line_cube):
        with pytest.warns(UserWarning, match="colour"):
            SliceViewController(line_cube, params={"colour": "red"})

    def test_invalid_beam_position(self, line_cube):
        with pytest.raises(ValueError):
            SliceViewController(line_cube, params={"beam_position": 7})

    def test_render_retried(self, line_cube, surface_factory, caplog):
        """Test that a surface not ready yet is drawn on the next event."""
        surface = surface_factory(fail_renders=1)
        controller = SliceViewController(line_cube, surface)

        with caplog.at_level(logging.WARNING):
            controller.start()
        assert surface.renders == []
        assert "will retry" in caplog.text

        controller.handle(CursorMove(0, 0))
        assert len(surface.renders) == 1


class TestPlaneChange:
    """Test velocity selection."""

    def test_reference_scenario(self, controller, recording_surface):
        """Test that 3.4 km/s displays plane 13 at 3 km/s."""
        assert controller.handle(PlaneChange(velocity=3.4)) == (
            pytest.approx(3.0)
        )
        assert controller.slice.plane == 13
        np.testing.assert_array_equal(
            recording_surface.renders[-1][0],
            controller.cube.data[:, :, 13].T,
        )

    def test_same_plane_not_redrawn(self, controller, recording_surface):
        """Test that a velocity within the same plane is not redrawn."""
        controller.handle(PlaneChange(velocity=3.4))
        controller.handle(PlaneChange(velocity=3.2))
        assert len(recording_surface.renders) == 2

        controller.handle(PlaneChange(velocity=3.2, force=True))
        assert len(recording_surface.renders) == 3

    def test_wheel_steps(self, controller):
        """Test coarse and fine wheel increments."""
        assert controller.handle(PlaneChange(steps=2)) == pytest.approx(2.0)
        assert controller.plane == 12

        assert controller.handle(PlaneChange(steps=1, fine=True)) == (
            pytest.approx(2.0)
        )
        assert controller.plane == 12

    def test_fine_steps_accumulate(self, controller):
        """Test that steps smaller than half a channel add up."""
        controller.handle(PlaneChange(steps=2))
        for _ in range(30):
            controller.handle(PlaneChange(steps=1, fine=True))

        # two channels of 20 / 21 km/s, then 30 steps of 0.02 km/s
        assert controller.plane == 13
        assert controller.velocity == pytest.approx(3.0)

    def test_fine_steps_after_overshoot(self, controller):
        """Test that an out of range request is pulled back to the edge."""
        controller.handle(PlaneChange(velocity=99.0))
        for _ in range(30):
            controller.handle(PlaneChange(steps=-1, fine=True))

        assert controller.plane == 19

    def test_clamped(self, controller):
        assert controller.handle(PlaneChange(velocity=99.0)) == (
            pytest.approx(10.0)
        )
        assert controller.plane == 20


class TestIntegration:
    """Test the integrated map mode."""

    def test_toggle(self, controller, recording_surface):
        """Test switching to the integrated map and back."""
        slice2d = controller.handle(IntegrationToggle())

        assert slice2d.integrated
        assert slice2d.grid[0, 0] == pytest.approx(21000.0)

        # plane changes are remembered but not drawn
        renders = len(recording_surface.renders)
        controller.handle(PlaneChange(velocity=3.4))
        assert len(recording_surface.renders) == renders
        assert controller.plane == 13

        slice2d = controller.handle(IntegrationToggle(False))
        assert not slice2d.integrated
        assert slice2d.plane == 13

    def test_zero_channel_width(self, cube_factory, caplog):
        """Test that integration is refused without a channel width."""
        cube = cube_factory(shape=(4, 3, 1), v_bounds=(0.0, 0.0))
        controller = SliceViewController(cube)

        with caplog.at_level(logging.ERROR):
            slice2d = controller.handle(IntegrationToggle(True))

        assert not controller.integrated
        assert not slice2d.integrated
        assert "Integration impossible" in caplog.text

    def test_integrated_parameter_without_channel_width(self, cube_factory):
        """Test that a single plane cube starts on single planes."""
        cube = cube_factory(shape=(4, 3, 1), v_bounds=(0.0, 0.0))
        controller = SliceViewController(cube, params={"integrated": True})

        slice2d = controller.start()
        assert not controller.integrated
        assert not slice2d.integrated


class TestCursor:
    """Test cursor readouts and the spectrum."""

    def test_corners(self, controller):
        """Test the bottom-left and top-right pixels of plane 10."""
        readout = controller.handle(CursorMove(0, 0))
        assert readout.flux == 1000.0
        assert readout.text == "x: 1  y: 1  1000.000 K"
        np.testing.assert_array_equal(
            controller.spectrum[1], 100 * np.arange(21)
        )

        readout = controller.handle(CursorMove(160, 120))
        assert readout.pixel == (7, 5)
        assert readout.flux == 1057.0

    def test_off_panel_uses_central_pixel(self, controller):
        """Test that the spectrum falls back to the central pixel."""
        readout = controller.handle(CursorMove(500, 60))

        assert readout.is_empty
        np.testing.assert_array_equal(
            controller.spectrum[1], 23 + 100 * np.arange(21)
        )

    def test_zoomed_readout(self, controller):
        """Test that the readout follows the displayed bounds."""
        controller.handle(
            Zoom(x_range=(0.0, 7 * ARCSEC), y_range=(0.0, 5 * ARCSEC))
        )
        readout = controller.handle(CursorMove(160, 120))
        assert readout.pixel == (7, 5)

        readout = controller.handle(CursorMove(0, 0))
        # x = 0 is half way between columns 3 and 4
        assert readout.pixel == (4, 3)

    def test_headless_screen_extent(self, line_cube):
        """Test the default panel, rows growing downward."""
        controller = SliceViewController(line_cube)
        readout = controller.handle(CursorMove(0, 0))

        # top-left is x min, y max
        assert readout.pixel == (0, 5)
        assert readout.flux == 1050.0

    def test_frame_change(self, controller):
        """Test that the last readout is redone in the new frame."""
        controller.handle(CursorMove(80, 60))
        readout = controller.handle(FrameChange("offset"))

        assert readout.position_text == 'dx: 0.00"  dy: 0.00"'

    def test_unknown_projection(
            self, cube_factory, recording_surface, caplog
    ):
        """Test that a failed sky conversion gives an empty readout."""
        cube = cube_factory(projection="XYZ")
        controller = SliceViewController(
            cube, recording_surface, params={"frame": "equatorial"}
        )
        controller.start()

        with caplog.at_level(logging.WARNING):
            readout = controller.handle(CursorMove(80, 60))

        assert readout.is_empty
        assert "No sky position" in caplog.text


class TestContours:
    """Test contour editing through events."""

    def test_add_and_remove(self, controller, recording_surface):
        """Test that contour edits redraw the slice with the levels."""
        slice2d = controller.handle(ContourEdit("add", "2, 1, 1.0"))
        assert slice2d.contour_levels == (1.0, 2.0)
        assert recording_surface.renders[-1][2] == (1.0, 2.0)

        # the last new level entered, 1.0, is selected and removed
        slice2d = controller.handle(ContourEdit("remove"))
        assert controller.contours.list() == ["2.0"]
        assert slice2d.contour_levels == (2.0,)

        slice2d = controller.handle(ContourEdit("clear"))
        assert slice2d.contour_levels is None

    def test_invalid_add(self, controller, recording_surface, caplog):
        """Test that an invalid entry changes nothing."""
        controller.handle(ContourEdit("add", "1"))
        renders = len(recording_surface.renders)

        with caplog.at_level(logging.WARNING):
            controller.handle(ContourEdit("add", "2, two"))

        assert controller.contours.list() == ["1.0"]
        assert len(recording_surface.renders) == renders
        assert "rejected" in caplog.text

    def test_remove_out_of_range(self, controller, caplog):
        """Test that removing a missing level changes nothing."""
        controller.handle(ContourEdit("add", "1, 2"))

        with caplog.at_level(logging.WARNING):
            slice2d = controller.handle(ContourEdit("remove", index=5))

        assert controller.contours.list() == ["1.0", "2.0"]
        assert slice2d.contour_levels == (1.0, 2.0)
        assert "not removed" in caplog.text

    def test_unknown_action(self, controller):
        with pytest.raises(ValueError):
            controller.handle(ContourEdit("rotate"))


class TestBeam:
    """Test the beam overlay."""

    def test_bottom_left_corner(self, controller):
        """Test the default beam position."""
        overlay = controller.beam_overlay
        major = 3 * ARCSEC

        assert overlay.centre == (
            pytest.approx(-7 * ARCSEC + 0.6 * major),
            pytest.approx(-5 * ARCSEC + 0.6 * major),
        )
        assert len(overlay.physical[0]) == 200

    def test_scales_with_zoom(self, controller):
        """Test that zooming in by two doubles the beam on screen."""
        before = np.ptp(controller.beam_overlay.device[0])
        controller.handle(
            Zoom(
                x_range=(-3.5 * ARCSEC, 3.5 * ARCSEC),
                y_range=(-2.5 * ARCSEC, 2.5 * ARCSEC),
            )
        )
        after = np.ptp(controller.beam_overlay.device[0])

        assert after == pytest.approx(2 * before)

    def test_ellipse_axes(self):
        """Test the ellipse extent without rotation."""
        xs, ys = BeamOverlay.ellipse(4.0, 2.0, 0.0, (1.0, 1.0), 401)

        assert np.ptp(xs) == pytest.approx(2.0, abs=1e-3)
        assert np.ptp(ys) == pytest.approx(4.0, abs=1e-3)

    def test_no_beam(self, line_cube):
        controller = SliceViewController(
            line_cube, params={"beam_position": 0}
        )
        controller.start()
        assert controller.beam_overlay is None


class TestRangesAndViews:
    """Test axis ranges, the 3D views and cube replacement."""

    def test_iso_views(self, line_cube, iso_view_factory):
        """Test that the 3D views get the samples and full ranges."""
        views = [iso_view_factory(), iso_view_factory()]
        controller = SliceViewController(line_cube, iso_views=views)
        controller.start()

        for view in views:
            assert view.samples[3].size == 8 * 6 * 21
            assert view.axis_ranges[0] == pytest.approx((-4.0, 3.0))

        controller.handle(RangeChange("v", 0.0, -10.0))
        assert views[1].axis_ranges[2] == pytest.approx((-10.5, -0.5))
        assert controller.ranges.get_range("v") == (-10.0, 0.0)

    def test_linked_cameras(self, line_cube, iso_view_factory):
        """Test that the secondary view follows the primary."""
        primary, secondary = iso_view_factory(), iso_view_factory()
        controller = SliceViewController(
            line_cube, iso_views=[primary, secondary]
        )
        controller.start()

        primary.projection = ProjectionState(eye=(2, 0, 0))
        primary.complete_frame()
        assert secondary.projection == primary.projection

        controller.handle(Reset())
        assert primary.resets == 1
        assert secondary.resets == 1

    def test_unlinked_by_parameter(self, line_cube, iso_view_factory):
        primary, secondary = iso_view_factory(), iso_view_factory()
        controller = SliceViewController(
            line_cube, iso_views=[primary, secondary],
            params={"linked": False}
        )
        primary.projection = ProjectionState(eye=(2, 0, 0))
        primary.complete_frame()

        assert controller.synchronizer.state == "unlinked"
        assert secondary.projection == ProjectionState()

    def test_reset_zoom(self, controller, recording_surface):
        controller.handle(Zoom(x_range=(0.0, 1.0)))
        assert recording_surface.bounds[:2] == (0.0, 1.0)

        controller.handle(Reset())
        assert recording_surface.bounds[:2] == (-7 * ARCSEC, 7 * ARCSEC)

    def test_replace_cube(self, controller, cube_factory):
        """Test that ranges and contours survive a cube replacement."""
        controller.handle(RangeChange("v", -2.0, 4.0))
        controller.handle(ContourEdit("add", "1, 2"))
        controller.handle(PlaneChange(velocity=3.4))

        new_cube = cube_factory(shape=(4, 4, 11), v_bounds=(-50.0, 50.0))
        slice2d = controller.replace_cube(new_cube)

        assert controller.ranges.get_range("v") == (-2.0, 4.0)
        assert controller.contours.list() == ["1.0", "2.0"]
        assert slice2d.shape == (4, 4)
        assert slice2d.contour_levels == (1.0, 2.0)
        assert controller.plane == 5
        assert controller.velocity == pytest.approx(0.0)

    def test_replace_with_single_plane(self, controller, cube_factory):
        """Test that integration is turned off without channel width."""
        controller.handle(IntegrationToggle(True))
        cube = cube_factory(shape=(4, 3, 1), v_bounds=(0.0, 0.0))

        slice2d = controller.replace_cube(cube)
        assert not controller.integrated
        assert slice2d.plane == 0


class TestPreferences:
    """Test saving and re-applying the view configuration."""

    def test_key_order(self, controller):
        assert list(controller.preferences()) == [
            "velocity", "integrated", "contours", "ranges", "frame", "title"
        ]

    def test_apply_preferences(self, controller):
        """Test that stored preferences are re-applied."""
        slice2d = controller.apply_preferences(
            velocity=3.4, contours="2, 1", ranges={"v": (0.0, 5.0)}
        )

        assert slice2d.plane == 13
        assert controller.contours.list() == ["1.0", "2.0"]
        assert controller.contours.selected == 1
        preferences = controller.preferences()
        assert preferences["ranges"]["v"] == [0.0, 5.0]
        assert preferences["velocity"] == pytest.approx(3.0)

    def test_apply_integration_without_channel_width(
            self, cube_factory, caplog
    ):
        """Test that a refused integration is reverted and logged."""
        cube = cube_factory(shape=(4, 3, 1), v_bounds=(0.0, 0.0))
        controller = SliceViewController(cube)

        with caplog.at_level(logging.ERROR):
            slice2d = controller.apply_preferences(integrated=True)

        assert not controller.integrated
        assert not slice2d.integrated
        assert "Integration impossible" in caplog.text

        # later redraws still work
        slice2d = controller.handle(ContourEdit("add", "1.0"))
        assert slice2d.contour_levels == (1.0,)
