"""Prompt construction for kubectl translation."""

from kubesafe.kubectl.types import CLARIFICATION_MARKER, EnvironmentContext

SUPPORTED_OPERATIONS = (
    "get", "describe", "logs", "delete", "scale", "apply", "create", "patch",
    "edit", "exec", "port-forward", "drain", "cordon", "uncordon", "top",
    "rollout", "label", "annotate", "cp", "auth", "explain", "api-resources",
)

# (request, command template, confidence, rationale); {ns} is the active namespace
FEW_SHOT_EXAMPLES = (
    ("show all pods", "kubectl get pods -n {ns}", 95,
     "Standard pod listing in current namespace"),
    ("delete deployment nginx", "kubectl delete deployment nginx -n {ns}", 90,
     "Explicit deployment deletion with resource name provided"),
    ("show logs", "kubectl logs", 40,
     f"{CLARIFICATION_MARKER}: Which pod? Command requires pod name (e.g. 'kubectl logs <pod-name>')"),
    ("scale my api to 5", "kubectl scale deployment api --replicas=5 -n {ns}", 75,
     "Assuming 'api' is a deployment name. If it is a different resource type, please specify."),
)


def _render_examples(namespace: str) -> str:
    lines = []
    for request, template, confidence, rationale in FEW_SHOT_EXAMPLES:
        command = template.format(ns=namespace)
        lines.append(f'User: "{request}"')
        lines.append(
            f'Response: {{"command": "{command}", "confidence": {confidence}, '
            f'"rationale": "{rationale}"}}'
        )
        lines.append("")
    return "\n".join(lines).rstrip()


def build_system_prompt(context: EnvironmentContext) -> str:
    """
    Build the system prompt for a translation call.

    Embeds the active cluster, namespace and environment class, the closed
    catalog of supported operations, the answer rules and a few examples.
    """
    namespace = context.effective_namespace
    parts = [
        "You are a kubectl expert assistant. Translate natural language requests "
        "into valid kubectl commands.",
        "CURRENT CONTEXT:\n"
        f"- Cluster: {context.cluster}\n"
        f"- Namespace: {namespace}\n"
        f"- Environment: {context.environment_class.value}",
        "SUPPORTED OPERATIONS:\n" + ", ".join(SUPPORTED_OPERATIONS),
        f"""RULES:
1. Return ONLY valid JSON with this exact structure:
   {{"command": "kubectl <subcommand> <args>", "confidence": <0-100>, "rationale": "<explanation>"}}
2. If the request is ambiguous (missing pod name, namespace or resource type), set confidence below 70 and include "{CLARIFICATION_MARKER}: <specific question>" in the rationale.
3. Always use the current namespace unless the user explicitly names another with "-n" or "--namespace".
4. Never return commands that use absolute paths or local file references, require interactive input, or include shell pipes or redirects.
5. For destructive operations (delete, drain, scale to zero) the resource name must be given explicitly. If it is not, set confidence below 70.""",
        "EXAMPLES:\n" + _render_examples(namespace),
        "Now translate the following request:",
    ]
    return "\n\n".join(parts)


def build_user_prompt(text: str, context: EnvironmentContext) -> str:
    """Build the user prompt: the request plus a short context reminder."""
    return (
        f'Natural language request: "{text}"\n\n'
        "Context reminder:\n"
        f"- Current cluster: {context.cluster}\n"
        f"- Current namespace: {context.effective_namespace}\n"
        f"- Environment type: {context.environment_class.value}\n\n"
        "Provide your response as JSON with command, confidence, and rationale fields."
    )
