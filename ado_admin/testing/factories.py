"""Test factories for generating test data."""

from polyfactory.factories.pydantic_factory import ModelFactory

from ado_admin.azure_devops.models import FieldDefinition, TestRun


class TestRunFactory(ModelFactory[TestRun]):
    """Factory for TestRun."""

    __test__ = False
    __model__ = TestRun


def make_field(reference_name: str, *, field_type: str = "string") -> FieldDefinition:
    """Build a field definition named after its last reference segment."""
    return FieldDefinition(
        name=reference_name.rsplit(".", 1)[-1],
        reference_name=reference_name,
        type=field_type,
    )
