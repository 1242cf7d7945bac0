"""JSON and CSV export of a run artifact."""

import csv
import io
import json
from typing import Any

from mapreviews.models.schemas import RunArtifact

CSV_HEADER = [
    "Place Name",
    "Address",
    "Total Rating",
    "Reviews Count",
    "URL",
    "Review ID",
    "Author Name",
    "Author URL",
    "Review Text",
    "Stars",
    "Published Date",
    "Response Text",
    "Likes Count",
]


def to_json(artifact: RunArtifact, indent: int = 2) -> str:
    """Serialize the artifact with camelCase keys."""
    return json.dumps(artifact.to_json_dict(), indent=indent, ensure_ascii=False)


def _blank_if_falsy(value: Any) -> Any:
    # Zero ratings, counts and stars export as empty cells.
    return value if value else ""


def to_csv(artifact: RunArtifact) -> str:
    """One row per review, place columns repeated on every row.

    Places without reviews produce no rows.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)

    for place in artifact.places:
        for review in place.reviews:
            writer.writerow([
                place.title,
                place.address,
                _blank_if_falsy(place.rating),
                _blank_if_falsy(place.total_reviews),
                place.url,
                review.id,
                review.author_name,
                review.author_url,
                review.text,
                _blank_if_falsy(review.stars),
                review.published_at_date,
                review.response_from_owner or "",
                _blank_if_falsy(review.likes_count),
            ])

    return buffer.getvalue()
