import unittest

from pydantic import ValidationError

from config.types import SpawnEnvironment, WorkflowSettings


class TestWorkflowSettings(unittest.TestCase):
    """Test cases for the WorkflowSettings model."""

    def test_defaults(self):
        settings = WorkflowSettings()
        self.assertEqual(settings.agent_cli_path, "claude")
        self.assertEqual(settings.agent_shell, "sh")
        self.assertIsNone(settings.workflow_cwd)
        self.assertEqual(settings.workflow_sessions_dir, ".ai-workflows/.sessions")
        self.assertTrue(settings.workflow_record_sessions)
        self.assertEqual(settings.workflow_log_level, "INFO")

    def test_init_with_values(self):
        settings = WorkflowSettings(
            agent_cli_path="/opt/bin/claude",
            workflow_cwd="/work",
            workflow_record_sessions=False,
        )
        self.assertEqual(settings.agent_cli_path, "/opt/bin/claude")
        self.assertEqual(settings.workflow_cwd, "/work")
        self.assertFalse(settings.workflow_record_sessions)

    def test_model_validation(self):
        """Pydantic rejects values that cannot be coerced"""
        with self.assertRaises(ValidationError):
            WorkflowSettings(workflow_record_sessions="not-a-bool")


class TestSpawnEnvironment(unittest.TestCase):
    """Test cases for the SpawnEnvironment class."""

    def test_get_and_set(self):
        spawn_env = SpawnEnvironment()
        self.assertIsNone(spawn_env.get("MISSING"))
        self.assertEqual(spawn_env.get("MISSING", "fallback"), "fallback")

        spawn_env.set("API_URL", "http://localhost")
        self.assertEqual(spawn_env.get("API_URL"), "http://localhost")
        self.assertEqual(spawn_env.variables, {"API_URL": "http://localhost"})

    def test_merged_over(self):
        spawn_env = SpawnEnvironment(variables={"A": "overlay", "B": "new"})
        base = {"A": "base", "C": "kept"}

        merged = spawn_env.merged_over(base)

        self.assertEqual(merged, {"A": "overlay", "B": "new", "C": "kept"})
        # Base mapping is not modified
        self.assertEqual(base, {"A": "base", "C": "kept"})


if __name__ == "__main__":
    unittest.main()
