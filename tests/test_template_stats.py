import pytest

from packager.core.template_stats import TemplateCounts, calculate_complexity, count_template_nodes

from .conftest import make_template


def test_counts_resources_parameters_and_outputs():
    counts = count_template_nodes(make_template(resources=3, parameters=2, outputs=1))

    assert counts == TemplateCounts(resource_count=3, parameter_count=2, output_count=1)
    assert counts.complexity == 4


@pytest.mark.parametrize("template", [
    None,
    [],
    "text",
    {},
    {"resources": {"not": "a list"}, "parameters": ["not", "a", "mapping"], "outputs": 3},
])
def test_missing_or_malformed_sections_count_as_zero(template):
    assert count_template_nodes(template) == TemplateCounts()


@pytest.mark.parametrize("resources, parameters, outputs, expected", [
    (0, 0, 0, 0),
    (1, 1, 1, 1),
    (10, 5, 3, 13),
    (0, 0, 3, 0),
    (0, 0, 4, 1),
])
def test_complexity_is_weighted_and_rounded_down(resources, parameters, outputs, expected):
    assert calculate_complexity(resources, parameters, outputs) == expected
