# tests/v1/test_users.py
"""Tests for rating history export and erasure endpoints."""

from fastapi import status
from sqlalchemy import update

from arms_ratings.models import MaterialRating


def test_export_rating_history(client, rating_engine, make_material) -> None:
    notes = make_material("Notes")
    slides = make_material("Slides")
    rating_engine.rate(notes.id, "A", "up")
    rating_engine.rate(slides.id, "A", "down")

    response = client.get("/api/v1/users/A/ratings")

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert [(item["material_id"], item["value"]) for item in body] == [
        (slides.id, "down"),
        (notes.id, "up"),
    ]
    assert body[0]["material_title"] == "Slides"


def test_erase_rating_history(client, rating_engine, material) -> None:
    rating_engine.rate(material.id, "A", "up")
    rating_engine.rate(material.id, "B", "down")

    response = client.delete("/api/v1/users/A/ratings")

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["user_id"] == "A"
    assert body["processed"] == [material.id]
    assert body["complete"] is True

    aggregate = client.get(f"/api/v1/ratings/{material.id}").json()
    assert (aggregate["up_votes"], aggregate["down_votes"], aggregate["total_ratings"]) == (0, 1, 1)
    assert client.get("/api/v1/users/A/ratings").json() == []


def test_partial_erasure_reports_multi_status(client, rating_engine, make_material, db_session) -> None:
    fine = make_material("Fine")
    broken = make_material("Broken")
    rating_engine.rate(fine.id, "A", "up")
    rating_engine.rate(broken.id, "A", "up")
    db_session.execute(
        update(MaterialRating)
        .where(MaterialRating.material_id == broken.id)
        .values(up_votes=0, down_votes=1, total_ratings=1, rating_score=0.0)
    )
    db_session.commit()

    response = client.delete("/api/v1/users/A/ratings")

    assert response.status_code == status.HTTP_207_MULTI_STATUS
    body = response.json()
    assert body["complete"] is False
    assert body["processed"] == [fine.id]
    assert body["failed"] == {str(broken.id): "RatingIntegrityError"}
