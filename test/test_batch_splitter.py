from datetime import date

from extraction.batch_splitter import parse_batch_tasks, split_segments

MONDAY = date(2025, 1, 13)


def test_splits_on_separator_words():
    payloads = parse_batch_tasks("Add buy milk tomorrow and call mom on friday, then pay rent", MONDAY)
    assert [p.text for p in payloads] == ["buy milk", "call mom", "pay rent"]
    assert payloads[0].due_date == "2025-01-14"
    assert payloads[1].due_date == "2025-01-17"
    assert payloads[2].due_date is None


def test_next_starting_a_date_is_not_a_separator():
    assert split_segments("dentist next monday") == ["dentist next monday"]
    payloads = parse_batch_tasks("add dentist next monday", MONDAY)
    assert len(payloads) == 1
    assert payloads[0].due_date == "2025-01-20"


def test_ordinal_separators_and_empty_segments():
    payloads = parse_batch_tasks("first clean the kitchen, second walk the dog and finally relax", MONDAY)
    assert [p.text for p in payloads] == ["clean the kitchen", "walk the dog", "relax"]


def test_single_sentence():
    payloads = parse_batch_tasks("water plants", MONDAY)
    assert len(payloads) == 1


def test_no_tasks():
    assert parse_batch_tasks("add and also", MONDAY) == []
