import json
from dataclasses import replace

import pytest

from posture_ai.helpers.enums import MetricStatus, ModelStatus, SessionAngle, SessionType
from posture_ai.helpers.exceptions import CaptureTransitionError
from posture_ai.analysis.core.capture import CapturePhase, ManualScheduler
from posture_ai.analysis.core.data_types import CVA, THORACIC_KYPHOSIS, DetectionResult
from posture_ai.analysis.modules.posture_type import PostureTypeName, ScoreTier, StabilityGrade
from posture_ai.analysis.service import EngineConfig, PostureEngine, create_engine_for_profile
from posture_ai.schemas.sche_posture import SessionSchema

from conftest import FRAME_H, FRAME_W, SIDE_POSE, front_pose_with_cva, make_landmarks


def engine_config(session_type="quick", **kwargs):
    return EngineConfig(
        session_type=session_type,
        profile_id="p1",
        measure_duration=15.0,
        countdown_seconds=3,
        readiness_frames_needed=3,
        readiness_confirm_delay_ms=600,
        poll_interval=0.1,
        ema_alpha=0.3,
        session_log_enabled=False,
        **kwargs,
    )


def ready_engine(scheduler, session_type="quick"):
    engine = PostureEngine(engine_config(session_type), scheduler=scheduler)
    engine.start()
    engine.on_model_status(ModelStatus.LOADING)
    engine.on_model_status("ready")
    engine.start_readiness()
    return engine


def run_pass(engine, scheduler, landmarks, frames=150):
    for _ in range(3):
        engine.process_detection(landmarks, FRAME_W, FRAME_H)
    scheduler.advance(0.6)
    scheduler.advance(3.0)
    for _ in range(frames):
        engine.process_detection(landmarks, FRAME_W, FRAME_H)
        scheduler.advance(0.1)
    scheduler.advance(1.0)


class TestQuickAssessment:
    def test_constant_cva_pass(self, scheduler):
        engine = ready_engine(scheduler)
        sessions = []
        engine.add_session_listener(sessions.append)
        landmarks = make_landmarks(front_pose_with_cva(60))

        run_pass(engine, scheduler, landmarks)

        assert engine.current_phase == CapturePhase.DONE
        assert len(sessions) == 1
        session = engine.session
        assert session.type == SessionType.QUICK
        assert session.angle == SessionAngle.FRONT
        assert session.profile_id == "p1"

        cva = session.metrics[CVA]
        assert cva.value == pytest.approx(60.0)
        assert cva.status == MetricStatus.GOOD
        assert cva.stability == 100
        assert session.overall_score == 100

        assessment = engine.assessment
        assert assessment.posture_type == PostureTypeName.IDEAL
        assert assessment.score_tier == ScoreTier.EXCELLENT
        assert assessment.stability_grade == StabilityGrade.A
        assert assessment.exercises == []

    def test_frames_buffered_only_while_measuring(self, scheduler):
        engine = ready_engine(scheduler)
        landmarks = make_landmarks(front_pose_with_cva(60))
        run_pass(engine, scheduler, landmarks, frames=40)
        # Pass still running
        assert engine.current_phase == CapturePhase.MEASURING
        assert len(engine.machine.front_frames) == 40

    def test_outputs_per_phase(self, scheduler):
        engine = ready_engine(scheduler)
        landmarks = make_landmarks(front_pose_with_cva(60))

        out = engine.process_detection(landmarks, FRAME_W, FRAME_H, 10)
        data = out.to_dict()
        assert data["phase"] == "readiness"
        assert data["view"] == "front"
        assert data["statuses"][CVA] == "good"
        assert data["readiness"]["streak"] == 1
        assert [c["label"] for c in data["readiness"]["checks"]] == ["face", "ears", "shoulders", "hips"]
        assert data["timestamp_ms"] == 10

        engine.process_detection(landmarks, FRAME_W, FRAME_H)
        out = engine.process_detection(landmarks, FRAME_W, FRAME_H)
        assert out.readiness["all_passed"] is True

        scheduler.advance(0.6)
        out = engine.process_detection(landmarks, FRAME_W, FRAME_H)
        assert out.phase == "countdown"
        assert out.countdown == {"view": "front", "remaining": 3}

        scheduler.advance(3.0)
        out = engine.process_detection(landmarks, FRAME_W, FRAME_H)
        assert out.phase == "measuring"
        assert out.measuring["frame_count"] == 1
        json.loads(out.to_json())

    def test_no_person_frame_resets_streak(self, scheduler):
        engine = ready_engine(scheduler)
        landmarks = make_landmarks(front_pose_with_cva(60))
        engine.process_detection(landmarks, FRAME_W, FRAME_H)
        engine.process_detection(landmarks, FRAME_W, FRAME_H)

        out = engine.process_detection(None, FRAME_W, FRAME_H)

        assert out.person_detected is False
        assert out.statuses == {}
        assert engine.machine.readiness_streak == 0
        assert engine.process_detection([], FRAME_W, FRAME_H).person_detected is False

    def test_accepts_detector_points(self, scheduler):
        engine = ready_engine(scheduler)
        points = [
            {"x": lm.x, "y": lm.y, "z": 0.0, "visibility": lm.visibility}
            for lm in make_landmarks(front_pose_with_cva(60)).landmarks
        ]
        out = engine.process_detection(points, FRAME_W, FRAME_H)
        assert out.metrics[CVA] == pytest.approx(60.0)

    def test_process_result(self, scheduler):
        engine = ready_engine(scheduler)
        landmarks = make_landmarks(front_pose_with_cva(60))

        out = engine.process_result(DetectionResult(landmarks, FRAME_W, FRAME_H, 40))
        assert out.person_detected is True
        assert out.timestamp_ms == 40
        assert engine.machine.readiness_streak == 1

        out = engine.process_result(DetectionResult(None, FRAME_W, FRAME_H, 80))
        assert out.person_detected is False
        assert engine.machine.readiness_streak == 0

    def test_session_record(self, scheduler):
        engine = ready_engine(scheduler)
        assert engine.session_record() is None
        run_pass(engine, scheduler, make_landmarks(front_pose_with_cva(60)))

        record = engine.session_record()
        assert isinstance(record, SessionSchema)
        dumped = record.model_dump(by_alias=True)
        assert dumped["profileId"] == "p1"
        assert dumped["overallScore"] == 100
        assert engine.assessment_record().posture_type == "ideal"

    def test_final_output_carries_session(self, scheduler):
        engine = ready_engine(scheduler)
        landmarks = make_landmarks(front_pose_with_cva(60))
        run_pass(engine, scheduler, landmarks)
        out = engine.process_detection(landmarks, FRAME_W, FRAME_H)
        assert out.phase == "done"
        assert out.session["overallScore"] == 100
        assert out.assessment["posture_type"] == "ideal"


class TestFullAssessment:
    def test_front_then_side(self, scheduler):
        engine = ready_engine(scheduler, "full")
        front = make_landmarks(front_pose_with_cva(60))
        side = make_landmarks(SIDE_POSE)

        run_pass(engine, scheduler, front)
        assert engine.current_phase == CapturePhase.DONE
        assert engine.session is None

        engine.continue_to_side()
        out = engine.process_detection(side, FRAME_W, FRAME_H)
        assert out.view == "side"
        assert THORACIC_KYPHOSIS in out.metrics
        assert [c["label"] for c in out.readiness["checks"]] == ["ears", "shoulders", "hips", "knees"]

        for _ in range(2):
            engine.process_detection(side, FRAME_W, FRAME_H)
        scheduler.advance(0.6)
        scheduler.advance(3.0)
        for _ in range(150):
            engine.process_detection(side, FRAME_W, FRAME_H)
            scheduler.advance(0.1)
        scheduler.advance(1.0)
        assert engine.current_phase == CapturePhase.SIDE_DONE

        session = engine.finish()
        assert session.angle == SessionAngle.BOTH
        assert session.metrics[CVA].value == pytest.approx(60.0)
        assert session.metrics[THORACIC_KYPHOSIS].value == pytest.approx(0.0)
        assert engine.assessment is not None

    def test_done_phase_keeps_front_analysis(self, scheduler):
        engine = ready_engine(scheduler, "full")
        front = make_landmarks(front_pose_with_cva(60))
        run_pass(engine, scheduler, front)
        out = engine.process_detection(front, FRAME_W, FRAME_H)
        assert out.view == "front"
        assert engine.machine.front_frames[-1].metrics[CVA] == pytest.approx(60.0)


class TestSmoothingResets:
    def test_engine_and_machine_share_smoother(self, scheduler):
        config = replace(engine_config(), ema_alpha=0.5)
        engine = PostureEngine(config, scheduler=scheduler)
        assert engine.machine.smoother.alpha == 0.5

        engine.start()
        engine.on_model_status("ready")
        engine.start_readiness()
        engine.process_detection(make_landmarks(front_pose_with_cva(60)), FRAME_W, FRAME_H)
        assert engine.machine.smoother.values[CVA] == pytest.approx(60.0)

    def test_restart_after_cancel_starts_cold(self, scheduler):
        engine = ready_engine(scheduler)
        engine.process_detection(make_landmarks(front_pose_with_cva(40)), FRAME_W, FRAME_H)
        engine.cancel()
        assert len(engine.machine.smoother) == 0

        engine.start()
        engine.on_model_status("ready")
        engine.start_readiness()
        out = engine.process_detection(make_landmarks(front_pose_with_cva(60)), FRAME_W, FRAME_H)
        assert out.metrics[CVA] == pytest.approx(60.0)

    def test_pass_end_clears_smoothing(self, scheduler):
        engine = ready_engine(scheduler, "full")
        run_pass(engine, scheduler, make_landmarks(front_pose_with_cva(60)))
        assert engine.current_phase == CapturePhase.DONE
        assert len(engine.machine.smoother) == 0

    def test_side_pass_starts_cold(self, scheduler):
        engine = ready_engine(scheduler, "full")
        run_pass(engine, scheduler, make_landmarks(front_pose_with_cva(60)))
        # Frames analyzed in done keep feeding the front view
        engine.process_detection(make_landmarks(front_pose_with_cva(60)), FRAME_W, FRAME_H)
        assert len(engine.machine.smoother) > 0

        engine.continue_to_side()
        assert len(engine.machine.smoother) == 0


class TestControl:
    def test_model_error(self, scheduler):
        engine = PostureEngine(engine_config(), scheduler=scheduler)
        engine.start()
        engine.on_model_status("error", "WebGL unavailable")
        out = engine.tick(0)
        assert out.phase == "error"
        assert out.error == "WebGL unavailable"

    def test_cancel(self, scheduler):
        engine = ready_engine(scheduler)
        landmarks = make_landmarks(front_pose_with_cva(60))
        for _ in range(3):
            engine.process_detection(landmarks, FRAME_W, FRAME_H)
        engine.cancel()
        scheduler.advance(20.0)
        assert engine.current_phase == CapturePhase.IDLE
        assert engine.session is None

    def test_cancel_after_finalize_raises(self, scheduler):
        engine = ready_engine(scheduler)
        run_pass(engine, scheduler, make_landmarks(front_pose_with_cva(60)))
        with pytest.raises(CaptureTransitionError):
            engine.cancel()

    def test_frame_timestamps_drive_default_clock(self):
        engine = PostureEngine(engine_config())
        engine.start()
        engine.on_model_status("ready")
        engine.start_readiness()
        landmarks = make_landmarks(front_pose_with_cva(60))

        ts = 1000
        for _ in range(3):
            engine.process_detection(landmarks, FRAME_W, FRAME_H, ts)
            ts += 33
        ts += 700
        assert engine.process_detection(landmarks, FRAME_W, FRAME_H, ts).phase == "countdown"

        ts += 3100
        assert engine.process_detection(landmarks, FRAME_W, FRAME_H, ts).phase == "measuring"

        while engine.current_phase == CapturePhase.MEASURING:
            ts += 100
            engine.process_detection(landmarks, FRAME_W, FRAME_H, ts)
        assert engine.session.metrics[CVA].stability == 100

    def test_state_snapshot(self, scheduler):
        engine = PostureEngine.create_instance(engine_config(), instance_id="engine-1", scheduler=scheduler)
        snapshot = engine.get_state_snapshot()
        assert snapshot["instance_id"] == "engine-1"
        assert snapshot["phase"] == "idle"
        json.dumps(snapshot)

    def test_create_engine_for_profile(self):
        engine = create_engine_for_profile("p9", "seated", scheduler=ManualScheduler())
        assert engine.instance_id == "engine_p9"
        assert engine.machine.session_type == SessionType.SEATED


def test_session_logger_integration(scheduler, tmp_path):
    config = replace(engine_config(), log_dir=str(tmp_path), session_log_enabled=True)
    engine = PostureEngine(config, scheduler=scheduler)
    engine.start()
    engine.on_model_status("ready")
    engine.start_readiness()
    run_pass(engine, scheduler, make_landmarks(front_pose_with_cva(60)))

    reports = list(tmp_path.glob("*/*.json"))
    assert len(reports) == 1
    report = json.loads(reports[0].read_text(encoding="utf-8"))
    assert report["report"]["session"]["overallScore"] == 100
    categories = {e["category"] for e in report["entries"]}
    assert {"session", "phase", "readiness", "measuring", "scoring"} <= categories
