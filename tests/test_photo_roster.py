import pytest

from src.core.config import get_settings
from src.photo.errors import InvalidSubjectError
from src.photo.roster import RosterGroup, SubjectRoster


def test_default_roster_has_two_groups(monkeypatch) -> None:
    monkeypatch.delenv("PHOTO_TOP_GOLFERS", raising=False)
    monkeypatch.delenv("PHOTO_ALT_GOLFERS", raising=False)
    get_settings.cache_clear()

    roster = SubjectRoster.from_settings(get_settings())

    assert [group.label for group in roster.groups] == ["Today's Favourites", "Alternative Favourites"]
    assert "Scottie Scheffler" in roster.groups[0].names
    assert "Greg Norman" in roster.groups[1].names
    assert roster.contains("Bryson DeChambeau")

    get_settings.cache_clear()


def test_validate_trims_whitespace_and_returns_name() -> None:
    roster = SubjectRoster([RosterGroup(label="A", names=("Greg Norman",))])

    assert roster.validate("  Greg Norman ") == "Greg Norman"


@pytest.mark.parametrize("name", ["Unknown Person", "greg norman", "", "Greg"])
def test_validate_rejects_names_outside_roster(name: str) -> None:
    roster = SubjectRoster([RosterGroup(label="A", names=("Greg Norman",))])

    with pytest.raises(InvalidSubjectError) as exc_info:
        roster.validate(name)
    assert exc_info.value.code == "invalid_golfer"
    assert exc_info.value.status_code == 400


def test_group_partition_does_not_change_membership() -> None:
    split = SubjectRoster(
        [
            RosterGroup(label="A", names=("Tiger Woods",)),
            RosterGroup(label="B", names=("John Daly",)),
        ]
    )
    merged = SubjectRoster([RosterGroup(label="All", names=("Tiger Woods", "John Daly"))])

    for name in ["Tiger Woods", "John Daly", "Someone Else"]:
        assert split.contains(name) is merged.contains(name)


def test_as_dict_lists_groups_for_display() -> None:
    roster = SubjectRoster([RosterGroup(label="A", names=("Tiger Woods", "John Daly"))])

    assert roster.as_dict() == {"groups": [{"label": "A", "names": ["Tiger Woods", "John Daly"]}]}
