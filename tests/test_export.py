from types import SimpleNamespace

from campus_vote.database.models import ElectionStatus
from campus_vote.voting.export import (
    export_filename, format_percentage, percentage, results_payload, results_to_csv,
)
from campus_vote.voting.tally import TallyRow


def _rows(*counts):
    return [TallyRow(f"id-{name}", name, count) for name, count in counts]


def test_results_to_csv():
    csv_text = results_to_csv(_rows(("Alice", 3), ("Bob", 1)))

    assert csv_text == "Candidate,Votes,Percentage\nAlice,3,75.00%\nBob,1,25.00%\n"


def test_csv_with_no_votes_shows_zero_percent():
    csv_text = results_to_csv(_rows(("Alice", 0), ("Bob", 0)))

    assert csv_text.splitlines()[1:] == ["Alice,0,0%", "Bob,0,0%"]


def test_csv_quotes_names_with_commas():
    csv_text = results_to_csv(_rows(("Smith, Jane", 1), ('Bob "The Builder"', 2)))

    assert '"Smith, Jane",1,33.33%' in csv_text
    assert '"Bob ""The Builder""",2,66.67%' in csv_text


def test_csv_for_election_without_candidates():
    assert results_to_csv([]) == "Candidate,Votes,Percentage\n"


def test_percentages():
    assert percentage(1, 3) == 33.33
    assert percentage(0, 0) == 0.0
    assert format_percentage(2, 3) == "66.67%"
    assert format_percentage(5, 0) == "0%"


def test_results_payload():
    election = SimpleNamespace(id="e1", title="President", status=ElectionStatus.ACTIVE)

    payload = results_payload(election, _rows(("Alice", 3), ("Bob", 1)))

    assert payload["total_votes"] == 4
    assert payload["status"] == "active"
    assert payload["results"][0] == {
        "candidate_id": "id-Alice",
        "candidate_name": "Alice",
        "vote_count": 3,
        "percentage": 75.0,
    }


def test_export_filename():
    assert export_filename("e1") == "election-e1-results.csv"
