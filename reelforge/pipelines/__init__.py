"""Pipeline orchestrators for ReelForge."""

from reelforge.pipelines.run_scenario_pipeline import ScenarioPipeline, build_pipeline, run_scenario

__all__ = ["ScenarioPipeline", "build_pipeline", "run_scenario"]
