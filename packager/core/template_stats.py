#!/usr/bin/env python3
"""
Structural statistics of deployment templates.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict

# Complexity weights per node kind
RESOURCE_WEIGHT = 1.0
PARAMETER_WEIGHT = 0.5
OUTPUT_WEIGHT = 0.3


@dataclass(frozen=True)
class TemplateCounts:
    resource_count: int = 0
    parameter_count: int = 0
    output_count: int = 0

    @property
    def complexity(self) -> int:
        return calculate_complexity(self.resource_count, self.parameter_count, self.output_count)

    def to_dict(self) -> Dict[str, int]:
        return {
            'resource_count': self.resource_count,
            'parameter_count': self.parameter_count,
            'output_count': self.output_count,
            'complexity': self.complexity
        }


def count_template_nodes(template: Any) -> TemplateCounts:
    """
    Count resource-like, parameter-like and output-like nodes.

    `resources` is counted when it is a list, `parameters` and `outputs`
    when they are mappings. Anything else counts as zero.
    """
    if not isinstance(template, dict):
        return TemplateCounts()

    resources = template.get('resources')
    parameters = template.get('parameters')
    outputs = template.get('outputs')

    return TemplateCounts(
        resource_count=len(resources) if isinstance(resources, list) else 0,
        parameter_count=len(parameters) if isinstance(parameters, dict) else 0,
        output_count=len(outputs) if isinstance(outputs, dict) else 0
    )


def calculate_complexity(resources: int, parameters: int, outputs: int) -> int:
    """Weighted node count, rounded down."""
    return math.floor(
        resources * RESOURCE_WEIGHT +
        parameters * PARAMETER_WEIGHT +
        outputs * OUTPUT_WEIGHT
    )
