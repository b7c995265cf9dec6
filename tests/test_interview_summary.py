import unittest
from datetime import datetime, timedelta, timezone

from app.conversation.models import new_message
from app.conversation.summary import build_completion_summary, format_duration
from app.workflow.steps import STEP_ORDER, Step, presentation_for, step_icon, step_title
from app.workflow.summary import build_interview_summary

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class InterviewSummaryTests(unittest.TestCase):
    def test_summary_drops_system_messages(self):
        transcript = [
            new_message("system", "Interview started"),
            new_message("user", "A"),
            new_message("assistant", "B"),
            new_message("system", "Interview completed."),
        ]
        self.assertEqual(build_interview_summary(transcript), "User: A\n\nAI: B")

    def test_empty_transcript_gives_empty_summary(self):
        self.assertEqual(build_interview_summary([]), "")
        self.assertEqual(build_interview_summary([new_message("system", "only system")]), "")


class CompletionSummaryTests(unittest.TestCase):
    def test_counts_and_duration(self):
        transcript = [
            new_message("assistant", "Welcome."),
            new_message("user", "Hi."),
            new_message("assistant", "Tell me more."),
            new_message("user", "Sure."),
        ]
        summary = build_completion_summary(transcript, NOW, NOW + timedelta(minutes=3, seconds=7))
        lines = summary.splitlines()
        self.assertEqual(lines[0], "Interview completed.")
        self.assertEqual(lines[1], "Messages exchanged: 4")
        self.assertEqual(lines[2], "Conversation turns: 2")
        self.assertEqual(lines[3], "Duration: 3m 07s")
        self.assertNotIn("Key topics:", summary)
        self.assertNotIn("Recommendations:", summary)

    def test_keyword_excerpts_come_from_assistant_messages(self):
        transcript = [
            new_message("user", "My strength is testing."),
            new_message("assistant", "Your biggest STRENGTH is ownership."),
            new_message("assistant", "I recommend adding metrics. " + "y" * 200),
        ]
        summary = build_completion_summary(transcript, NOW, NOW)
        self.assertIn("Key topics:\n- Your biggest STRENGTH is ownership.", summary)
        self.assertIn("Recommendations:", summary)
        self.assertNotIn("My strength is testing.", summary)
        recommendation = summary.split("Recommendations:\n- ")[1]
        self.assertTrue(recommendation.endswith("..."))
        self.assertEqual(len(recommendation), 153)

    def test_at_most_three_excerpts_per_section(self):
        transcript = [new_message("assistant", f"You should try idea {i}.") for i in range(5)]
        summary = build_completion_summary(transcript, NOW, NOW)
        self.assertEqual(summary.count("- You should try idea"), 3)

    def test_format_duration_without_start(self):
        self.assertEqual(format_duration(None, NOW), "0m 00s")


class StepPresentationTests(unittest.TestCase):
    def test_every_step_has_presentation(self):
        self.assertEqual(len(STEP_ORDER), 8)
        for step in STEP_ORDER:
            self.assertTrue(presentation_for(step).title)

    def test_titles_and_icons(self):
        self.assertEqual(step_title(Step.UPLOAD), "Upload Your Resume")
        self.assertEqual(step_title(Step.AUTH), "Create Account to Continue")
        self.assertEqual(step_icon(Step.INTERVIEW), "message-square")
        self.assertEqual(step_icon(Step.PARSE), step_icon(Step.REWRITE))


if __name__ == "__main__":
    unittest.main()
