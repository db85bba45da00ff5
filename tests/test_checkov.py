"""Tests for checkov plan parsing and location resolution."""

import json

from scan_annotator.diff_index import build_diff_line_map
from scan_annotator.annotations import filter_findings
from scan_annotator.parsers import ParseContext, parse, parse_report
from scan_annotator.parsers.checkov import load_enrichment


def _raw(payload) -> bytes:
    return json.dumps(payload).encode("utf-8")


class TestCheckovResolution:
    """Tests for resolving plan findings to source files."""

    def test_unresolved_findings_use_synthetic_path(self, checkov_report):
        findings = parse("checkov", _raw(checkov_report))

        assert [(f.path, f.line) for f in findings] == [
            ("Terraform/<unknown>", None),
            ("Terraform/<unknown>", None),
        ]
        assert findings[0].severity == "HIGH"
        assert findings[0].rule_id == "CKV_AWS_20"
        assert findings[0].message.endswith("(aws_s3_bucket.data)")
        # No severity from checkov maps to INFO.
        assert findings[1].severity == "INFO"

    def test_synthetic_path_follows_iac_dir(self, checkov_report):
        findings = parse("checkov", _raw(checkov_report), context=ParseContext(iac_dir="infra"))

        assert findings[0].path == "infra/<unknown>"

    def test_enrichment_mapping_resolves_file_and_line(self, checkov_report):
        enrichment = _raw({"aws_s3_bucket.data": {"file": "./Terraform/s3.tf", "line": 12}})

        findings = parse("checkov", _raw(checkov_report), context=ParseContext(enrichment=enrichment))

        assert (findings[0].path, findings[0].line) == ("Terraform/s3.tf", 12)
        assert findings[1].path == "Terraform/<unknown>"

    def test_enrichment_list_layout(self, checkov_report):
        enrichment = _raw(
            [{"address": "aws_s3_bucket.logs", "file": "Terraform/logs.tf", "line": 3}]
        )

        findings = parse("checkov", _raw(checkov_report), context=ParseContext(enrichment=enrichment))

        assert (findings[1].path, findings[1].line) == ("Terraform/logs.tf", 3)

    def test_enrichment_without_line_is_file_level(self, checkov_report):
        enrichment = _raw({"aws_s3_bucket.data": "Terraform/s3.tf"})

        finding = parse("checkov", _raw(checkov_report), context=ParseContext(enrichment=enrichment))[0]

        assert (finding.path, finding.line) == ("Terraform/s3.tf", None)

    def test_indexed_resource_falls_back_to_base_address(self):
        report = {
            "check_type": "terraform_plan",
            "results": {
                "failed_checks": [
                    {
                        "check_id": "CKV_AWS_1",
                        "check_name": "x",
                        "file_path": "/tfplan.json",
                        "resource": 'aws_instance.web["blue"]',
                    }
                ]
            },
        }
        enrichment = _raw({"aws_instance.web": {"file": "Terraform/ec2.tf", "line": 9}})

        finding = parse("checkov", _raw(report), context=ParseContext(enrichment=enrichment))[0]

        assert (finding.path, finding.line) == ("Terraform/ec2.tf", 9)

    def test_source_file_scan_uses_line_range(self):
        report = {
            "check_type": "terraform",
            "results": {
                "failed_checks": [
                    {
                        "check_id": "CKV_AWS_2",
                        "check_name": "y",
                        "file_path": "/main.tf",
                        "repo_file_path": "/Terraform/main.tf",
                        "file_line_range": [5, 20],
                        "resource": "aws_lb.front",
                    }
                ]
            },
        }

        finding = parse("checkov", _raw(report))[0]

        assert (finding.path, finding.line) == ("Terraform/main.tf", 5)

    def test_malformed_enrichment_is_ignored(self, checkov_report, caplog):
        report = parse_report(
            "checkov", _raw(checkov_report), context=ParseContext(enrichment=b"{broken")
        )

        assert report.status == "ok"
        assert len(report.findings) == 2
        assert "Ignoring plan enrichment" in caplog.text

    def test_unresolved_finding_never_annotated(self, checkov_report):
        findings = parse("checkov", _raw(checkov_report))
        diff_map = build_diff_line_map(
            [{"filename": "Terraform/<unknown>", "patch": "@@ -0,0 +1,2 @@\n+a\n+b"}]
        )

        assert filter_findings(findings, diff_map) == []


class TestCheckovShapes:
    """Tests for the report layouts checkov emits."""

    def test_metrics_are_summed_across_frameworks(self, checkov_report):
        second = {
            "check_type": "dockerfile",
            "results": {"failed_checks": []},
            "summary": {"passed": 3, "failed": 0, "skipped": 0},
        }

        report = parse_report("checkov", _raw([checkov_report, second]))

        assert report.metrics == {"passed": 15, "failed": 2, "skipped": 1}
        assert len(report.findings) == 2

    def test_bare_summary_means_nothing_scanned(self):
        report = parse_report(
            "checkov",
            _raw({"passed": 0, "failed": 0, "skipped": 0, "parsing_errors": 0, "resource_count": 0}),
        )

        assert report.status == "ok"
        assert report.findings == []

    def test_unrelated_object_is_malformed(self):
        assert parse_report("checkov", _raw({"hello": "world"})).status == "error"


class TestLoadEnrichment:
    """Tests for plan-enrichment decoding."""

    def test_resources_wrapper(self):
        raw = _raw({"resources": [{"address": "a.b", "file": "/x.tf", "start_line": 2}]})

        assert load_enrichment(raw) == {"a.b": ("x.tf", 2)}

    def test_missing_is_empty(self):
        assert load_enrichment(None) == {}

    def test_scalar_is_ignored(self):
        assert load_enrichment(b"[1, 2]") == {}
        assert load_enrichment(b"7") == {}
