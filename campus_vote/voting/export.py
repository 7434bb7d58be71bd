# campus_vote/voting/export.py

import csv
import io

from campus_vote.voting.tally import total_votes

CSV_HEADER = ["Candidate", "Votes", "Percentage"]


def percentage(count, total):
    return round(count / total * 100, 2) if total > 0 else 0.0


def format_percentage(count, total):
    if total <= 0:
        return "0%"
    return f"{count / total * 100:.2f}%"


def results_payload(election, rows):
    total = total_votes(rows)
    return {
        "election_id": election.id,
        "title": election.title,
        "status": election.status.value,
        "total_votes": total,
        "results": [
            dict(row.to_dict(), percentage=percentage(row.vote_count, total))
            for row in rows
        ],
    }


def results_to_csv(rows):
    """Render tally rows as ``Candidate,Votes,Percentage`` CSV text."""
    total = total_votes(rows)
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for row in rows:
        writer.writerow([row.candidate_name, row.vote_count, format_percentage(row.vote_count, total)])
    return buffer.getvalue()


def export_filename(election_id):
    return f"election-{election_id}-results.csv"
