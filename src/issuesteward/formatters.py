"""Event formatters: CI automation events -> canonical issue drafts.

Each event kind is a frozen dataclass; together they form ``AutomationEvent``.
For every kind there is a pure ``build_*`` function returning the draft and
the criteria used to find its canonical issue, and an async ``handle_*``
function that reconciles it with ``always_update=True`` so every automation
run refreshes the canonical issue.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from .models import Issue, IssueDraft, RunContext, SearchCriteria, SearchState
from .reconcile import ReconciliationEngine

TEMPLATE_VALIDATION_TITLE = "Template Validation Failure: Critical Issues Detected"
SECURITY_TITLE_PREFIX = "🔴 CRITICAL Security Findings Detected"

DEPLOYMENT_INFRA = "infrastructure"
DEPLOYMENT_APPLICATION = "application"
DEPLOYMENT_GENERAL = "general"


@dataclass(frozen=True)
class TemplateValidationFailure:
    workflow_run: str
    templates_affected: int | str
    filter: str
    failed_stages: tuple[str, ...] = ()


@dataclass(frozen=True)
class SecurityScanFinding:
    scan_id: str
    critical_count: int
    high_count: int
    total_findings: int
    workflow_run: str
    commit: str


@dataclass(frozen=True)
class DeploymentFailure:
    environment: str
    deployment_type: str
    failure_point: str
    workflow_run: str
    commit: str
    triggered_by: str
    status: Mapping[str, str] = field(default_factory=dict)
    template: str | None = None


@dataclass(frozen=True)
class InfrastructureFailure:
    environment: str
    workflow_run: str
    commit: str
    triggered_by: str
    error_details: str | None = None


AutomationEvent = Union[
    TemplateValidationFailure,
    SecurityScanFinding,
    DeploymentFailure,
    InfrastructureFailure,
]


@dataclass(frozen=True)
class FormattedIssue:
    draft: IssueDraft
    criteria: SearchCriteria


# --- template validation ----------------------------------------------------


def build_template_validation_issue(
    event: TemplateValidationFailure, context: RunContext
) -> FormattedIssue:
    stages = "\n".join(f"- ❌ {stage}" for stage in event.failed_stages)
    body = f"""## Template Validation Failure

Critical issues have been detected in template validation.

**Validation Run:** {event.workflow_run}
**Templates Affected:** {event.templates_affected}
**Filter:** {event.filter}

## Failed Stages
{stages}

## Immediate Actions Required
1. Review workflow logs for detailed error messages
2. Fix syntax errors and deployment issues
3. Re-run validation after fixes
4. Consider disabling problematic templates temporarily

**Priority:** High - Template reliability issue"""
    return FormattedIssue(
        draft=IssueDraft.build(
            title=TEMPLATE_VALIDATION_TITLE,
            body=body,
            labels=["template-validation", "bug", "high-priority"],
        ),
        criteria=SearchCriteria.build(
            title_pattern=TEMPLATE_VALIDATION_TITLE,
            labels=["template-validation"],
            state=SearchState.OPEN,
        ),
    )


# --- security scan ------------------------------------------------------------


def build_security_scan_issue(event: SecurityScanFinding, context: RunContext) -> FormattedIssue:
    repo = context.repo.full_name
    body = f"""## Critical Security Alert

**{event.critical_count} critical security findings** have been detected in the security scan.

**Scan Details:**
- **Scan ID:** {event.scan_id}
- **Repository:** {repo}
- **Commit:** {event.commit}
- **Workflow:** {event.workflow_run}

## Summary of Findings

| Severity | Count |
|----------|-------|
| 🔴 Critical | {event.critical_count} |
| 🟠 High | {event.high_count} |
| 🟡 Medium | 0 |
| 🔵 Low | 0 |

**Total Findings:** {event.total_findings}

## Immediate Actions Required

1. **Review Security Dashboard:** [Security Tab](https://github.com/{repo}/security)
2. **Address Critical Findings:** Focus on critical severity issues first
3. **Implement Fixes:** Update code to resolve security vulnerabilities
4. **Re-scan:** Run security scan again after fixes
5. **Update Security Policies:** Consider additional security controls

## Impact

Critical findings may indicate:
- Potential security vulnerabilities
- Exposed secrets or credentials
- Insecure configurations
- Compliance violations

**Priority:** 🔴 HIGH - Immediate attention required"""
    return FormattedIssue(
        draft=IssueDraft.build(
            title=f"{SECURITY_TITLE_PREFIX} - {event.scan_id}",
            body=body,
            labels=["security", "critical", "vulnerability"],
        ),
        criteria=SearchCriteria.build(
            title_pattern=re.compile(re.escape(SECURITY_TITLE_PREFIX)),
            labels=["security", "critical"],
            state=SearchState.OPEN,
        ),
    )


# --- deployment failure -------------------------------------------------------


def classify_failure_point(failure_point: str) -> str:
    """Pick the deployment variant by substring.

    The infrastructure check runs first, so a value mentioning both
    "Infrastructure" and "Coder" is reported as an infrastructure failure.
    """
    if "Infrastructure" in failure_point or "Phase 1" in failure_point:
        return DEPLOYMENT_INFRA
    if "Coder" in failure_point or "Phase 2" in failure_point:
        return DEPLOYMENT_APPLICATION
    return DEPLOYMENT_GENERAL


def render_phase_result(result: str) -> str:
    if result == "success":
        return "✅ Successful"
    if result == "failed":
        return "❌ Failed"
    if "not attempted" in result:
        return "⏭️ Not attempted (dependency failed)"
    return "⏭️ Skipped"


def render_phase_status(status: Mapping[str, str]) -> str:
    return "\n".join(
        f"- **{phase}:** {render_phase_result(str(result))}" for phase, result in status.items()
    )


def slugify_label(text: str) -> str:
    return re.sub(r"\s+", "-", text.lower())


def _deployment_summary(event: DeploymentFailure) -> str:
    return f"""**Environment:** {event.environment}
**Deployment Type:** {event.deployment_type}
**Failure Point:** {event.failure_point}
**Workflow Run:** {event.workflow_run}
**Triggered by:** {event.triggered_by}
**Commit:** {event.commit}"""


def _infra_deployment_body(event: DeploymentFailure) -> str:
    env = event.environment
    return f"""## Complete Environment Deployment Failure Report

{_deployment_summary(event)}

The complete environment deployment has failed during the infrastructure phase.

## Failure Analysis
{render_phase_status(event.status)}

## Components Affected
- Kubernetes cluster deployment
- Database provisioning
- Networking and load balancer setup
- Security policy configuration

## Next Steps
1. Review infrastructure deployment logs
2. Check Scaleway console for partially created resources
3. Verify Scaleway credentials and quotas
4. Check for resource conflicts or naming issues
5. Clean up any orphaned resources
6. Re-run complete deployment after fixing issues

## Recovery Options
- **Full Retry:** Re-run this complete deployment workflow
- **Manual Phases:** Run infrastructure and Coder deployments separately
- **Cleanup First:** Use teardown workflow before retrying

**Labels:** deployment-failure, infrastructure-failure, {env}"""


def _application_deployment_body(event: DeploymentFailure) -> str:
    env = event.environment
    return f"""## Partial Environment Deployment Failure Report

{_deployment_summary(event)}

The infrastructure deployed successfully, but Coder application deployment failed.

## Deployment Status
{render_phase_status(event.status)}

## Available Resources
- ✅ Kubernetes cluster is accessible
- ✅ Database is running and accessible
- ✅ Networking and load balancer configured
- ✅ Security policies applied
- ✅ Kubeconfig available for troubleshooting

## Troubleshooting Steps
1. **Access Cluster:** Use kubeconfig from infrastructure deployment
2. **Check Resources:**
   - `kubectl get pods -n coder`
   - `kubectl get pvc -n coder`
   - `kubectl describe deployment coder -n coder`
3. **Review Logs:** Check Coder deployment workflow logs
4. **Storage Issues:** Verify storage classes and PVC creation
5. **Resource Limits:** Ensure cluster has sufficient resources

## Recovery Options
- **Retry Coder Only:** Run 'Deploy Coder Application' workflow
- **Manual Investigation:** Use kubeconfig to troubleshoot
- **Complete Retry:** Re-run this complete deployment workflow
- **Infrastructure Intact:** No need to redeploy infrastructure

**Labels:** coder-failure, partial-deployment, {env}"""


def _general_deployment_body(event: DeploymentFailure) -> str:
    env = event.environment
    template_line = f"**Template:** {event.template}" if event.template else ""
    return f"""## Deployment Failure Report

{_deployment_summary(event)}
{template_line}

The automated deployment has failed. Please check the workflow logs for details.

## Deployment Status
{render_phase_status(event.status)}

## Next Steps
1. Review the workflow logs
2. Check Scaleway console for any resources that need cleanup
3. Verify Scaleway credentials and quotas
4. Re-run the deployment after fixing issues

## Recovery Options
- **Full Retry:** Re-run this deployment workflow
- **Manual Investigation:** Use available resources for troubleshooting
- **Cleanup First:** Use teardown workflow before retrying

**Labels:** deployment-failure, {env}"""


def build_deployment_failure_issue(event: DeploymentFailure, context: RunContext) -> FormattedIssue:
    env = event.environment
    variant = classify_failure_point(event.failure_point)
    if variant == DEPLOYMENT_INFRA:
        title = f"Complete Environment Deployment Failed: {env} environment"
        labels = ["deployment-failure", "infrastructure-failure", env]
        body = _infra_deployment_body(event)
    elif variant == DEPLOYMENT_APPLICATION:
        title = f"Coder Application Deployment Failed: {env} environment"
        labels = ["coder-failure", "partial-deployment", env]
        body = _application_deployment_body(event)
    else:
        title = f"Deployment Failed: {env} environment"
        labels = ["deployment-failure", env, slugify_label(event.failure_point)]
        body = _general_deployment_body(event)
    return FormattedIssue(
        draft=IssueDraft.build(title=title, body=body, labels=labels),
        criteria=SearchCriteria.build(
            # environment is interpolated unescaped; regex metacharacters in it change the match
            # and an unbalanced one (e.g. "prod(") raises re.error while building
            title_pattern=re.compile(f".*Deployment Failed.*{env}"),
            labels=["deployment-failure", env],
            state=SearchState.OPEN,
        ),
    )


# --- infrastructure failure ---------------------------------------------------


def build_infrastructure_failure_issue(
    event: InfrastructureFailure, context: RunContext
) -> FormattedIssue:
    env = event.environment
    error_block = (
        f"## Error Details\n```\n{event.error_details}\n```" if event.error_details else ""
    )
    body = f"""## Infrastructure Deployment Failure Report

**Environment:** {env}
**Workflow Run:** {event.workflow_run}
**Triggered by:** {event.triggered_by}
**Commit:** {event.commit}

Infrastructure deployment has failed for the {env} environment.

{error_block}

## Components That May Be Affected
- 🔧 Kubernetes cluster provisioning
- 🗄️ Database setup and configuration
- 🌐 Networking and load balancer configuration
- 🔒 Security policies and RBAC setup
- 📦 Backend state storage

## Immediate Actions Required
1. **Review Logs:** Check the workflow logs for specific error messages
2. **Scaleway Console:** Verify resource status and check for quota limits
3. **Resource Cleanup:** Clean up any partially created resources
4. **Configuration Check:** Verify Terraform configuration and variables
5. **Credentials:** Ensure Scaleway credentials are valid and have proper permissions

## Troubleshooting Guide

### Common Issues and Solutions
- **Quota Exceeded:** Check Scaleway quotas for compute, storage, and networking
- **Resource Conflicts:** Verify no naming conflicts with existing resources
- **Permission Issues:** Ensure service account has necessary IAM permissions
- **Regional Availability:** Confirm selected resources are available in target region
- **State Lock:** Check for Terraform state locks that may be blocking deployment

### Recovery Steps
1. **Cleanup:** Run teardown workflow to remove partial resources
2. **Investigate:** Review Scaleway console for any orphaned resources
3. **Fix Issues:** Address the root cause identified in logs
4. **Retry:** Re-run the infrastructure deployment

## Next Steps
- 🔍 Review detailed logs in workflow run
- 🧹 Clean up any orphaned resources in Scaleway console
- 🔧 Fix configuration or quota issues
- 🔄 Re-run deployment after resolution

**Priority:** High - Infrastructure foundation required for application deployment"""
    return FormattedIssue(
        draft=IssueDraft.build(
            title=f"Infrastructure Deployment Failed: {env} environment",
            body=body,
            labels=["deployment-failure", "infrastructure-failure", env, "high-priority"],
        ),
        criteria=SearchCriteria.build(
            title_pattern="Infrastructure Deployment Failed",
            labels=["infrastructure-failure", env],
            state=SearchState.OPEN,
        ),
    )


# --- handlers -----------------------------------------------------------------


def build_issue(event: AutomationEvent, context: RunContext) -> FormattedIssue:
    if isinstance(event, TemplateValidationFailure):
        return build_template_validation_issue(event, context)
    if isinstance(event, SecurityScanFinding):
        return build_security_scan_issue(event, context)
    if isinstance(event, DeploymentFailure):
        return build_deployment_failure_issue(event, context)
    if isinstance(event, InfrastructureFailure):
        return build_infrastructure_failure_issue(event, context)
    raise TypeError(f"Unsupported automation event: {type(event).__name__}")


async def _reconcile(engine: ReconciliationEngine, formatted: FormattedIssue) -> Issue:
    return await engine.create_or_update_issue(
        formatted.draft, formatted.criteria, always_update=True
    )


async def handle_template_validation_issue(
    engine: ReconciliationEngine, event: TemplateValidationFailure
) -> Issue:
    return await _reconcile(engine, build_template_validation_issue(event, engine.context))


async def handle_security_scan_issue(
    engine: ReconciliationEngine, event: SecurityScanFinding
) -> Issue:
    return await _reconcile(engine, build_security_scan_issue(event, engine.context))


async def handle_deployment_failure_issue(
    engine: ReconciliationEngine, event: DeploymentFailure
) -> Issue:
    return await _reconcile(engine, build_deployment_failure_issue(event, engine.context))


async def handle_infrastructure_failure_issue(
    engine: ReconciliationEngine, event: InfrastructureFailure
) -> Issue:
    return await _reconcile(engine, build_infrastructure_failure_issue(event, engine.context))


async def handle_event(engine: ReconciliationEngine, event: AutomationEvent) -> Issue:
    return await _reconcile(engine, build_issue(event, engine.context))


# --- payload decoding ---------------------------------------------------------

EVENT_KINDS: dict[str, type] = {
    "template-validation": TemplateValidationFailure,
    "security-scan": SecurityScanFinding,
    "deployment-failure": DeploymentFailure,
    "infrastructure-failure": InfrastructureFailure,
}

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def event_from_payload(kind: str, payload: Mapping[str, Any]) -> AutomationEvent:
    """Build an event from a CI payload; keys may be camelCase or snake_case."""
    cls = EVENT_KINDS.get(kind)
    if cls is None:
        raise ValueError(f"Unknown event kind {kind!r}; expected one of {sorted(EVENT_KINDS)}")
    data = {_snake(k): v for k, v in payload.items()}
    if cls is TemplateValidationFailure:
        return TemplateValidationFailure(
            workflow_run=str(data["workflow_run"]),
            templates_affected=data.get("templates_affected", 0),
            filter=str(data.get("filter", "")),
            failed_stages=tuple(str(s) for s in data.get("failed_stages") or ()),
        )
    if cls is SecurityScanFinding:
        return SecurityScanFinding(
            scan_id=str(data["scan_id"]),
            critical_count=int(data.get("critical_count", 0)),
            high_count=int(data.get("high_count", 0)),
            total_findings=int(data.get("total_findings", 0)),
            workflow_run=str(data["workflow_run"]),
            commit=str(data.get("commit", "")),
        )
    if cls is DeploymentFailure:
        status = data.get("status") or {}
        if not isinstance(status, Mapping):
            raise ValueError("deployment-failure 'status' must be a mapping of phase -> result")
        return DeploymentFailure(
            environment=str(data["environment"]),
            deployment_type=str(data.get("deployment_type", "")),
            failure_point=str(data.get("failure_point", "")),
            workflow_run=str(data["workflow_run"]),
            commit=str(data.get("commit", "")),
            triggered_by=str(data.get("triggered_by", "")),
            status={str(k): str(v) for k, v in status.items()},
            template=data.get("template") or None,
        )
    return InfrastructureFailure(
        environment=str(data["environment"]),
        workflow_run=str(data["workflow_run"]),
        commit=str(data.get("commit", "")),
        triggered_by=str(data.get("triggered_by", "")),
        error_details=data.get("error_details") or None,
    )


__all__ = [
    "AutomationEvent",
    "DeploymentFailure",
    "EVENT_KINDS",
    "FormattedIssue",
    "InfrastructureFailure",
    "SecurityScanFinding",
    "TemplateValidationFailure",
    "build_deployment_failure_issue",
    "build_infrastructure_failure_issue",
    "build_issue",
    "build_security_scan_issue",
    "build_template_validation_issue",
    "classify_failure_point",
    "event_from_payload",
    "handle_deployment_failure_issue",
    "handle_event",
    "handle_infrastructure_failure_issue",
    "handle_security_scan_issue",
    "handle_template_validation_issue",
    "render_phase_status",
]
