from testgen.scoring import score_submission

QUESTIONS = [
	{"id": "mcq_1", "kind": "mcq", "prompt": "2+2?", "options": ["3", "4", "5", "6"], "correct_answer": "4", "points": 1},
	{"id": "mcq_2", "kind": "mcq", "prompt": "3+3?", "options": ["5", "6", "7", "8"], "correct_answer": "6", "points": 2},
	{"id": "qa_3", "kind": "qa", "prompt": "Explain carrying.", "points": 2},
]


def test_mcq_answers_are_scored_against_correct_answer():
	scored = score_submission(QUESTIONS, [("mcq_1", "4"), ("mcq_2", "5"), ("qa_3", "You carry the one.")])
	assert scored.total_score == 1
	assert scored.max_score == 5
	assert scored.percentage == 20
	first, second, third = scored.answers
	assert (first.is_correct, first.points_earned, first.correct_answer) == (True, 1, "4")
	assert (second.is_correct, second.points_earned) == (False, 0)
	assert third.kind == "qa"
	assert third.is_correct is None
	assert third.correct_answer is None
	assert third.max_points == 2


def test_unanswered_questions_still_count_toward_max_score():
	scored = score_submission(QUESTIONS, [("mcq_2", "6")])
	assert [a.question_id for a in scored.answers] == ["mcq_2"]
	assert (scored.total_score, scored.max_score, scored.percentage) == (2, 5, 40)


def test_unknown_ids_are_ignored_and_last_answer_wins():
	scored = score_submission(QUESTIONS, [("nope", "4"), ("mcq_1", "3"), ("mcq_1", "4")])
	assert [a.answer for a in scored.answers] == ["4"]
	assert scored.total_score == 1


def test_mcq_without_answer_key_is_never_correct():
	questions = [{"id": "mcq_1", "kind": "mcq", "prompt": "Question 1 about X", "options": ["Option A"], "points": 1}]
	scored = score_submission(questions, [("mcq_1", "Option A")])
	assert scored.answers[0].is_correct is False
	assert scored.percentage == 0


def test_percentage_rounds_half_up_and_handles_empty_tests():
	questions = [{"id": f"mcq_{i}", "kind": "mcq", "prompt": "q", "correct_answer": "a", "points": 1} for i in range(1, 9)]
	scored = score_submission(questions, [("mcq_1", "a")])
	# 1/8 = 12.5%
	assert scored.percentage == 13
	assert score_submission([], []).percentage == 0
