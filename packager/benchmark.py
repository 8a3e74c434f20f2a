#!/usr/bin/env python3
"""
Streaming Benchmark for the Streaming Template Packager

Generates synthetic deployment templates of increasing size and runs the
analyze, archive and optimize operations on each, recording throughput and
peak memory. Results are written as a JSON and a Markdown report.
"""

import json
import logging
import shutil
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .core.options import StreamingOptions
from .errors import PackagingError
from .performance.memory_probe import MemoryProbe
from .services.operation_scope import missing_ancestors, remove_created_dirs
from .services.packaging_service import StreamingPackagingService

logger = logging.getLogger(__name__)

REPORT_JSON = 'streaming-performance-report.json'
REPORT_MARKDOWN = 'streaming-performance-report.md'

PADDING_SENTENCE = 'Lorem ipsum dolor sit amet, consectetur adipiscing elit. '


@dataclass(frozen=True)
class BenchmarkProfile:
    """Size class of a synthetic template and the options it is processed with."""
    name: str
    resource_count: int
    chunk_size_bytes: int
    max_memory_bytes: int
    padding_sentences: int = 0


PROFILES: Dict[str, BenchmarkProfile] = {
    'small': BenchmarkProfile('small', 10, 64 * 1024, 50 * 1024 * 1024),
    'medium': BenchmarkProfile('medium', 100, 512 * 1024, 100 * 1024 * 1024),
    'large': BenchmarkProfile('large', 500, 1024 * 1024, 200 * 1024 * 1024, padding_sentences=10000),
    'enterprise': BenchmarkProfile('enterprise', 1000, 2 * 1024 * 1024, 500 * 1024 * 1024,
                                   padding_sentences=50000),
}


@dataclass
class BenchmarkResult:
    """Outcome of one benchmark profile."""
    profile: BenchmarkProfile
    success: bool
    template_size_bytes: int = 0
    total_duration_millis: int = 0
    throughput_mb_per_second: float = 0.0
    memory_efficiency: float = 0.0
    peak_memory_bytes: Dict[str, int] = field(default_factory=dict)
    compression_ratio: Optional[float] = None
    size_reduction: Optional[float] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'profile': self.profile.name,
            'resource_count': self.profile.resource_count,
            'chunk_size_bytes': self.profile.chunk_size_bytes,
            'max_memory_bytes': self.profile.max_memory_bytes,
            'success': self.success,
            'template_size_bytes': self.template_size_bytes,
            'total_duration_millis': self.total_duration_millis,
            'throughput_mb_per_second': self.throughput_mb_per_second,
            'memory_efficiency': self.memory_efficiency,
            'peak_memory_bytes': dict(self.peak_memory_bytes),
            'compression_ratio': self.compression_ratio,
            'size_reduction': self.size_reduction,
            'error': self.error
        }


class TemplateGenerator:
    """Builds synthetic deployment templates with a realistic resource mix."""

    def generate(self, profile: BenchmarkProfile) -> Dict[str, Any]:
        count = profile.resource_count
        template: Dict[str, Any] = {
            '$schema': 'https://schema.management.azure.com/schemas/2019-04-01/deploymentTemplate.json#',
            'contentVersion': '1.0.0.0',
            'parameters': self.generate_parameters(count),
            'variables': self.generate_variables(count),
            'resources': self.generate_resources(count),
            'outputs': self.generate_outputs(count)
        }

        if profile.padding_sentences:
            template['_metadata'] = {
                'description': PADDING_SENTENCE * profile.padding_sentences,
                'generatedBy': 'StreamingBenchmark',
                'timestamp': datetime.now(timezone.utc).isoformat()
            }

        return template

    def generate_parameters(self, count: int) -> Dict[str, Any]:
        return {
            f'parameter{i}': {
                'type': 'string',
                'defaultValue': f'defaultValue{i}',
                'metadata': {'description': f'Test parameter {i} for streaming performance testing'}
            }
            for i in range(min(count, 100))
        }

    def generate_variables(self, count: int) -> Dict[str, str]:
        return {
            f'variable{i}': f"[concat('prefix-', parameters('parameter{i % 10}'), '-', "
                            f"uniqueString(resourceGroup().id))]"
            for i in range(min(count, 200))
        }

    def generate_outputs(self, count: int) -> Dict[str, Any]:
        return {
            f'output{i}': {'type': 'string', 'value': f"[variables('variable{i}')]"}
            for i in range(min(count, 50))
        }

    def generate_resources(self, count: int) -> List[Dict[str, Any]]:
        builders = [self._storage_account, self._virtual_network,
                    self._virtual_machine, self._key_vault]
        return [builders[i % len(builders)](i) for i in range(count)]

    def _storage_account(self, index: int) -> Dict[str, Any]:
        return {
            'type': 'Microsoft.Storage/storageAccounts',
            'apiVersion': '2023-01-01',
            'name': f"[concat('storage', {index}, uniqueString(resourceGroup().id))]",
            'location': '[resourceGroup().location]',
            'sku': {'name': 'Standard_LRS'},
            'kind': 'StorageV2',
            'properties': {
                'supportsHttpsTrafficOnly': True,
                'encryption': {
                    'services': {
                        'file': {'keyType': 'Account', 'enabled': True},
                        'blob': {'keyType': 'Account', 'enabled': True}
                    },
                    'keySource': 'Microsoft.Storage'
                }
            }
        }

    def _virtual_network(self, index: int) -> Dict[str, Any]:
        return {
            'type': 'Microsoft.Network/virtualNetworks',
            'apiVersion': '2023-02-01',
            'name': f"[concat('vnet', {index})]",
            'location': '[resourceGroup().location]',
            'properties': {
                'addressSpace': {'addressPrefixes': [f'10.{index % 256}.0.0/16']},
                'subnets': [{'name': 'default', 'properties': {'addressPrefix': f'10.{index % 256}.0.0/24'}}]
            }
        }

    def _virtual_machine(self, index: int) -> Dict[str, Any]:
        return {
            'type': 'Microsoft.Compute/virtualMachines',
            'apiVersion': '2023-03-01',
            'name': f"[concat('vm', {index})]",
            'location': '[resourceGroup().location]',
            'properties': {
                'hardwareProfile': {'vmSize': 'Standard_B2s'},
                'osProfile': {
                    'computerName': f"[concat('vm', {index})]",
                    'adminUsername': 'azureuser',
                    'adminPassword': "[parameters('adminPassword')]"
                },
                'storageProfile': {
                    'imageReference': {
                        'publisher': 'Canonical',
                        'offer': '0001-com-ubuntu-server-focal',
                        'sku': '20_04-lts-gen2',
                        'version': 'latest'
                    },
                    'osDisk': {'createOption': 'FromImage'}
                },
                'networkProfile': {
                    'networkInterfaces': [
                        {'id': f"[resourceId('Microsoft.Network/networkInterfaces', concat('nic', {index}))]"}
                    ]
                }
            }
        }

    def _key_vault(self, index: int) -> Dict[str, Any]:
        return {
            'type': 'Microsoft.KeyVault/vaults',
            'apiVersion': '2023-02-01',
            'name': f"[concat('kv', {index}, uniqueString(resourceGroup().id))]",
            'location': '[resourceGroup().location]',
            'properties': {
                'sku': {'family': 'A', 'name': 'standard'},
                'tenantId': '[subscription().tenantId]',
                'accessPolicies': [],
                'enabledForDeployment': False,
                'enabledForDiskEncryption': False,
                'enabledForTemplateDeployment': False
            }
        }


class StreamingBenchmark:
    """
    Runs every operation of the packaging service on synthetic templates.

    Each profile works in its own scratch directory below work_dir, which
    is removed once the profile finishes. Directories created for work_dir
    itself are removed after the last profile.
    """

    def __init__(self,
                 work_dir: Path,
                 probe: Optional[MemoryProbe] = None,
                 generator: Optional[TemplateGenerator] = None):
        self.work_dir = Path(work_dir)
        self.probe = probe
        self.generator = generator or TemplateGenerator()

    async def run(self, profile_names: Sequence[str] = tuple(PROFILES)) -> List[BenchmarkResult]:
        """Run the named profiles in order."""
        unknown = [name for name in profile_names if name not in PROFILES]
        if unknown:
            raise ValueError(f"Unknown benchmark profiles: {', '.join(unknown)}. Valid: {list(PROFILES)}")

        created_dirs = missing_ancestors(self.work_dir)
        results = []
        try:
            for name in profile_names:
                logger.info(f"Running benchmark profile '{name}'")
                result = await self.run_profile(PROFILES[name])
                if result.success:
                    logger.info(f"Profile '{name}' completed: {result.throughput_mb_per_second:.2f} MB/s, "
                                f"memory efficiency {result.memory_efficiency:.4f}")
                else:
                    logger.error(f"Profile '{name}' failed: {result.error}")
                results.append(result)
        finally:
            remove_created_dirs(created_dirs)

        return results

    async def run_profile(self, profile: BenchmarkProfile) -> BenchmarkResult:
        scratch = self.work_dir / f'streaming-{profile.name}'
        package_dir = scratch / 'package'
        template_path = package_dir / 'mainTemplate.json'

        options = StreamingOptions(
            max_memory_bytes=profile.max_memory_bytes,
            chunk_size_bytes=profile.chunk_size_bytes,
            memory_monitoring_enabled=True,
            temp_directory=scratch / 'temp'
        )
        service = StreamingPackagingService(options, probe=self.probe)

        started = time.perf_counter()
        try:
            package_dir.mkdir(parents=True, exist_ok=True)
            with open(template_path, 'w', encoding='utf-8') as f:
                json.dump(self.generator.generate(profile), f, indent=2)

            analysis = await service.analyze_template(template_path)
            archive = await service.create_package_archive(package_dir, scratch / 'package.zip')
            optimization = await service.optimize_template(template_path, scratch / 'optimized.json')
        except (PackagingError, OSError) as e:
            return BenchmarkResult(profile=profile, success=False, error=str(e))
        finally:
            shutil.rmtree(scratch, ignore_errors=True)

        duration_seconds = time.perf_counter() - started
        template_size = analysis.template_size_bytes
        peaks = {
            'analysis': analysis.metrics.peak_resident_bytes,
            'archive': archive.metrics.peak_resident_bytes,
            'optimization': optimization.metrics.peak_resident_bytes
        }
        max_peak = max(peaks.values())

        return BenchmarkResult(
            profile=profile,
            success=True,
            template_size_bytes=template_size,
            total_duration_millis=int(duration_seconds * 1000),
            throughput_mb_per_second=(template_size / 1024 / 1024) / duration_seconds if duration_seconds else 0.0,
            memory_efficiency=template_size / max_peak if max_peak else 0.0,
            peak_memory_bytes=peaks,
            compression_ratio=archive.metrics.compression_ratio,
            size_reduction=optimization.size_reduction
        )


def summarize(results: List[BenchmarkResult]) -> Dict[str, Any]:
    successful = [r for r in results if r.success]
    count = len(successful)
    return {
        'successful_tests': count,
        'total_tests': len(results),
        'average_throughput_mb_per_second': sum(r.throughput_mb_per_second for r in successful) / count if count else 0.0,
        'average_memory_efficiency': sum(r.memory_efficiency for r in successful) / count if count else 0.0,
        'total_duration_millis': sum(r.total_duration_millis for r in results)
    }


def write_reports(results: List[BenchmarkResult], output_dir: Path) -> Tuple[Path, Path]:
    """
    Write the JSON and Markdown benchmark reports.

    Returns:
        Tuple of (json report path, markdown report path)
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    report = {
        'summary': summarize(results),
        'results': [r.to_dict() for r in results],
        'generated_at': datetime.now(timezone.utc).isoformat()
    }

    json_path = output_dir / REPORT_JSON
    with open(json_path, 'w', encoding='utf-8') as f:
        json.dump(report, f, indent=2)

    markdown_path = output_dir / REPORT_MARKDOWN
    with open(markdown_path, 'w', encoding='utf-8') as f:
        f.write(render_markdown(report))

    logger.info(f"Benchmark reports written to {json_path} and {markdown_path}")
    return json_path, markdown_path


def render_markdown(report: Dict[str, Any]) -> str:
    summary = report['summary']
    lines = [
        '# Streaming Performance Report',
        '',
        f"Generated: {report['generated_at']}",
        '',
        '## Summary',
        '',
        f"- **Successful Tests**: {summary['successful_tests']}/{summary['total_tests']}",
        f"- **Average Throughput**: {summary['average_throughput_mb_per_second']:.2f} MB/s",
        f"- **Average Memory Efficiency**: {summary['average_memory_efficiency']:.4f}x",
        f"- **Total Duration**: {summary['total_duration_millis']}ms",
        '',
        '## Results',
    ]

    for result in report['results']:
        lines += [
            '',
            f"### {result['profile']}",
            '',
            f"- **Status**: {'Success' if result['success'] else 'Failed'}",
            f"- **Resource Count**: {result['resource_count']}",
            f"- **Chunk Size**: {result['chunk_size_bytes'] // 1024}KB",
            f"- **Max Memory**: {result['max_memory_bytes'] // 1024 // 1024}MB",
        ]
        if result['success']:
            lines += [
                f"- **Template Size**: {result['template_size_bytes'] / 1024 / 1024:.2f}MB",
                f"- **Throughput**: {result['throughput_mb_per_second']:.2f} MB/s",
                f"- **Memory Efficiency**: {result['memory_efficiency']:.4f}x",
                f"- **Total Duration**: {result['total_duration_millis']}ms",
            ]
            for operation, peak in result['peak_memory_bytes'].items():
                lines.append(f"- **{operation.capitalize()} Peak Memory**: {peak / 1024 / 1024:.2f}MB")
        else:
            lines += ['', '```', str(result['error']), '```']

    lines.append('')
    return '\n'.join(lines)
