#!/usr/bin/env python3
from __future__ import annotations

import importlib
import json
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fastapi.testclient import TestClient


@dataclass
class Probe:
  model: str
  ok: bool
  detail: str


def probe_models(provider: Any, models: list[str]) -> list[Probe]:
  from health_assistant import ProviderCallError

  probes: list[Probe] = []
  for model in models:
    try:
      text = provider.generate_content(model, "Reply with the single word: ok")
    except ProviderCallError as exc:
      probes.append(Probe(model=model, ok=False, detail=str(exc)))
      continue
    probes.append(Probe(model=model, ok=bool(text.strip()), detail=text.strip()[:80]))
  return probes


def run() -> int:
  repo_root = Path(__file__).resolve().parents[1]
  backend_dir = repo_root / "backend"
  if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

  backend_module = importlib.import_module("main")
  container = backend_module.container
  if container.provider is None or container.orchestrator is None:
    print("GEMINI_API_KEY is not set (checked the environment, .env and .env.local).")
    print("Create a key at https://aistudio.google.com/app/apikey")
    return 1

  print(f"Using API key {container.provider.key_prefix}")
  configured = sorted(set(container.orchestrator.chat_models) | set(container.orchestrator.symptom_models))
  probes = probe_models(container.provider, configured)

  headers = {"X-User-Email": "smoke@healthmate.local"}
  endpoint_results: list[dict[str, Any]] = []
  with TestClient(backend_module.app) as client:
    chat_response = client.post(
      "/chat",
      headers=headers,
      json={"message": "What are common causes of a mild headache?", "history": []},
    )
    endpoint_results.append({"endpoint": "/chat", "status_code": chat_response.status_code, "body": chat_response.json()})

    symptom_response = client.post(
      "/symptom-check",
      headers=headers,
      json={
        "symptoms": [
          {"name": "Headache", "severity": "mild", "duration": "1 day"},
          {"name": "Fatigue", "severity": "moderate", "duration": "3 days"},
        ],
        "age": 30,
      },
    )
    endpoint_results.append(
      {"endpoint": "/symptom-check", "status_code": symptom_response.status_code, "body": symptom_response.json()}
    )

  working = [probe for probe in probes if probe.ok]
  report_lines = [
    "# Provider Smoke Report",
    "",
    f"- Generated: `{datetime.now(timezone.utc).isoformat()}`",
    f"- Working models: `{len(working)}/{len(probes)}`",
    "",
    "## Model Probes",
    "",
  ]
  for probe in probes:
    status = "PASS" if probe.ok else "FAIL"
    report_lines.append(f"- {status} `{probe.model}`: {probe.detail}")
  report_lines.extend(["", "## Endpoint Results", ""])
  for item in endpoint_results:
    report_lines.append(f"### {item['endpoint']} ({item['status_code']})")
    report_lines.append("```json")
    report_lines.append(json.dumps(item["body"], indent=2, ensure_ascii=True))
    report_lines.append("```")
    report_lines.append("")

  report_path = repo_root / "PROVIDER_SMOKE_REPORT.md"
  report_path.write_text("\n".join(report_lines), encoding="utf-8")
  print(f"Wrote report: {report_path}")

  failed = [item for item in endpoint_results if item["status_code"] != 200]
  return 0 if working and not failed else 1


if __name__ == "__main__":
  raise SystemExit(run())
