"""Boilerplate file contents created during composition."""

from __future__ import annotations

from html import escape

from .models import Framework

BACKGROUND_HEADER = "// Background service worker\n"
CONTENT_SCRIPT_FILE = "content.js"


def content_script_boilerplate(title: str) -> str:
    """Starter content script."""
    return "\n".join([
        "// Content script - runs in matching pages",
        f"console.log({_js_string(title + ' content script loaded')});",
        "",
    ])


def page_html(title: str, script: str, *, module: bool = False, mount: bool = False) -> str:
    """Generate an extension UI page loading ``script``."""
    safe_title = escape(title)
    script_type = ' type="module"' if module else ""
    body = ['  <div id="app"></div>'] if mount else [f"  <h1>{safe_title}</h1>"]
    return "\n".join([
        "<!DOCTYPE html>",
        "<html>",
        "<head>",
        '  <meta charset="UTF-8">',
        f"  <title>{safe_title}</title>",
        "</head>",
        "<body>",
        *body,
        f'  <script{script_type} src="{script}"></script>',
        "</body>",
        "</html>",
        "",
    ])


def page_script(title: str) -> str:
    """Starter script for a UI page."""
    return "\n".join([
        f"// {title} UI logic",
        "document.addEventListener('DOMContentLoaded', () => {",
        f"  console.log({_js_string(title + ' loaded')});",
        "});",
        "",
    ])


def _js_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def _vanilla_script(title: str) -> str:
    return "\n".join([
        "document.addEventListener('DOMContentLoaded', () => {",
        "  const app = document.getElementById('app');",
        "  const heading = document.createElement('h1');",
        f"  heading.textContent = {_js_string(title)};",
        "  app.appendChild(heading);",
        "});",
        "",
    ])


def _react_script(title: str) -> str:
    return "\n".join([
        "import React from 'react';",
        "import { createRoot } from 'react-dom/client';",
        "",
        "function App() {",
        f"  return React.createElement('h1', null, {_js_string(title)});",
        "}",
        "",
        "createRoot(document.getElementById('app')).render(React.createElement(App));",
        "",
    ])


def _vue_script(title: str) -> str:
    return "\n".join([
        "import { createApp, h } from 'vue';",
        "",
        "createApp({",
        f"  render: () => h('h1', {_js_string(title)})",
        "}).mount('#app');",
        "",
    ])


def _preact_script(title: str) -> str:
    return "\n".join([
        "import { h, render } from 'preact';",
        "",
        f"render(h('h1', null, {_js_string(title)}), document.getElementById('app'));",
        "",
    ])


def _svelte_script(title: str) -> str:
    return "\n".join([
        "import { mount } from 'svelte';",
        "import App from './App.svelte';",
        "",
        f"mount(App, {{ target: document.getElementById('app'), props: {{ title: {_js_string(title)} }} }});",
        "",
    ])


SVELTE_COMPONENT = """\
<script>
  let { title } = $props();
</script>

<h1>{title}</h1>
"""

_SCRIPTS = {
    Framework.VANILLA: _vanilla_script,
    Framework.REACT: _react_script,
    Framework.VUE: _vue_script,
    Framework.PREACT: _preact_script,
    Framework.SVELTE: _svelte_script,
}


def framework_files(
    framework: Framework,
    page: str,
    script: str,
    title: str,
) -> dict[str, str]:
    """Return the entry UI files for ``framework``, keyed by project path.

    Output depends only on the arguments, so regenerating with the same
    inputs yields identical files.
    """
    if framework == Framework.NONE:
        return {}

    script_name = script.rsplit("/", 1)[-1]
    files = {
        page: page_html(
            title,
            script_name,
            module=framework != Framework.VANILLA,
            mount=True,
        ),
        script: _SCRIPTS[framework](title),
    }
    if framework == Framework.SVELTE:
        directory = script.rsplit("/", 1)[0] + "/" if "/" in script else ""
        files[f"{directory}App.svelte"] = SVELTE_COMPONENT
    return files
