import logging
import threading
import time
import uuid

from cachetools import TTLCache
from flask import Flask, current_app, jsonify, request, session

from config import get_settings
from system_prompt import PROMPT_SUGGESTIONS
from workflow import ValidationError, Workflow

logger = logging.getLogger(__name__)

settings = get_settings()

app = Flask(__name__)
app.secret_key = settings.secret_key
app.config["SETTINGS"] = settings
# Tests swap this for a stub; None means the shared Gemini service.
app.config["IMAGE_SERVICE"] = None


def make_registry(settings, timer=time.monotonic):
    """Bounded per-session workflow store; idle or least recently used sessions drop out."""
    return TTLCache(maxsize=settings.max_sessions, ttl=settings.session_ttl_seconds, timer=timer)


_workflows = make_registry(settings)
_workflows_lock = threading.Lock()


def current_workflow():
    """Return the workflow owned by this browser session, creating it on first use."""
    sid = session.get("sid")
    if not sid:
        sid = session["sid"] = uuid.uuid4().hex
    with _workflows_lock:
        wf = _workflows.get(sid)
        if wf is None:
            wf = Workflow(
                service=current_app.config["IMAGE_SERVICE"],
                settings=current_app.config["SETTINGS"],
            )
        # re-inserting restarts the idle timer
        _workflows[sid] = wf
    return wf


def state_response(wf):
    return jsonify(wf.state.to_dict())


def json_body():
    data = request.get_json(silent=True)
    if data is None:
        if request.get_data():
            return None
        return {}
    return data if isinstance(data, dict) else None


@app.route("/")
def index():
    return HTML_PAGE


@app.route("/api/state")
def get_state():
    wf = current_workflow()
    payload = wf.state.to_dict()
    payload["suggestions"] = PROMPT_SUGGESTIONS
    return jsonify(payload)


@app.route("/api/mockup", methods=["POST"])
async def submit_mockup():
    data = json_body()
    if data is None:
        return jsonify({"error": "Request body must be a JSON object"}), 400

    wf = current_workflow()
    if "prompt" in data and not wf.state.is_loading:
        wf.set_mockup_prompt(str(data["prompt"]))
    await wf.submit_mockup_prompt()
    return state_response(wf)


@app.route("/api/logo", methods=["POST"])
async def upload_logo():
    file = request.files.get("logo")
    if file is not None and not file.filename:
        file = None
    wf = current_workflow()
    await wf.select_logo(file)
    return state_response(wf)


@app.route("/api/apply", methods=["POST"])
async def apply_logo():
    data = json_body()
    if data is None:
        return jsonify({"error": "Request body must be a JSON object"}), 400

    wf = current_workflow()
    if "instruction" in data and not wf.state.is_loading:
        wf.set_edit_prompt(str(data["instruction"]))
    await wf.apply_logo()
    return state_response(wf)


@app.route("/api/reset", methods=["POST"])
def reset():
    wf = current_workflow()
    wf.reset()
    return state_response(wf)


@app.route("/api/error/dismiss", methods=["POST"])
def dismiss_error():
    wf = current_workflow()
    wf.dismiss_error()
    return state_response(wf)


@app.route("/api/suggestion", methods=["POST"])
def use_suggestion():
    data = json_body()
    if data is None:
        return jsonify({"error": "Request body must be a JSON object"}), 400

    wf = current_workflow()
    try:
        wf.use_suggestion(data.get("index"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return state_response(wf)


HTML_PAGE = r"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Mockup Studio</title>
<style>
  *, *::before, *::after { box-sizing: border-box; margin: 0; padding: 0; }

  body {
    font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
    background: #0f0f0f;
    color: #e0e0e0;
    min-height: 100vh;
  }

  .container {
    max-width: 960px;
    margin: 0 auto;
    padding: 40px 24px;
  }

  .top-bar {
    display: flex;
    align-items: center;
    justify-content: space-between;
    margin-bottom: 32px;
  }

  .top-bar h1 {
    font-size: 1.3rem;
    font-weight: 600;
    color: #fff;
  }

  .top-bar h1 span { color: #8b5cf6; }

  .top-bar p { color: #888; font-size: 0.78rem; }

  .alert {
    display: none;
    align-items: center;
    gap: 12px;
    border: 1px solid #ef4444;
    color: #fca5a5;
    background: #1a1111;
    border-radius: 10px;
    padding: 12px 16px;
    margin-bottom: 20px;
    font-size: 0.85rem;
  }
  .alert.visible { display: flex; }
  .alert span { flex: 1; }
  .alert button { background: transparent; color: #fca5a5; box-shadow: none; padding: 2px 8px; }

  .step {
    display: none;
    grid-template-columns: 1fr 1fr;
    gap: 24px;
    align-items: start;
  }
  .step.active { display: grid; }

  .step-header {
    display: flex;
    align-items: center;
    gap: 12px;
    margin-bottom: 6px;
  }

  .step-num {
    width: 26px; height: 26px;
    border-radius: 50%;
    background: #8b5cf6;
    color: #fff;
    display: flex;
    align-items: center;
    justify-content: center;
    font-size: 0.75rem;
    font-weight: 700;
    flex-shrink: 0;
  }

  .step-header h3 {
    font-size: 1rem;
    font-weight: 600;
    color: #fff;
  }

  .step-body {
    display: flex;
    flex-direction: column;
    gap: 14px;
  }

  .hint { color: #888; font-size: 0.82rem; }

  label { font-size: 0.78rem; color: #888; }

  textarea {
    width: 100%;
    min-height: 90px;
    background: #1a1a1a;
    color: #e0e0e0;
    border: 1px solid #2a2a2a;
    border-radius: 8px;
    padding: 12px;
    font-size: 0.85rem;
    font-family: inherit;
    resize: vertical;
    outline: none;
    transition: border-color 0.2s;
    line-height: 1.5;
  }
  textarea:focus { border-color: #8b5cf6; }
  textarea::placeholder { color: #555; }

  button {
    background: #8b5cf6;
    color: #fff;
    border: none;
    border-radius: 8px;
    padding: 10px 20px;
    font-size: 0.82rem;
    font-weight: 500;
    cursor: pointer;
    box-shadow: -5px -5px 30px #0f0f0f;
    transition: background 0.2s, opacity 0.2s;
  }
  button:hover { background: #7c3aed; }
  button:disabled { opacity: 0.5; cursor: not-allowed; }

  .chips { display: flex; flex-wrap: wrap; gap: 6px; }
  .chip {
    background: #232323;
    color: #aaa;
    border: 1px solid #333;
    border-radius: 999px;
    font-size: 0.7rem;
    padding: 5px 12px;
    box-shadow: none;
  }
  .chip:hover { background: #2e2e2e; color: #e0e0e0; }

  .dropzone {
    border: 2px dashed #2a2a2a;
    border-radius: 10px;
    padding: 24px;
    text-align: center;
    cursor: pointer;
    color: #888;
    font-size: 0.82rem;
    transition: border-color 0.2s;
  }
  .dropzone:hover { border-color: #8b5cf6; }
  .dropzone img {
    max-height: 96px;
    background: #fff;
    padding: 4px;
    border-radius: 6px;
    margin-bottom: 8px;
  }
  .dropzone .ok { color: #4ade80; font-weight: 600; }

  .image-panel {
    aspect-ratio: 1;
    background: #141414;
    border: 1px solid #1e1e1e;
    border-radius: 12px;
    display: flex;
    align-items: center;
    justify-content: center;
    padding: 16px;
    color: #666;
    font-size: 0.82rem;
  }
  .image-panel img { max-width: 100%; max-height: 100%; border-radius: 6px; }

  .loading {
    display: flex;
    align-items: center;
    gap: 10px;
    color: #888;
  }
  .spinner {
    width: 16px; height: 16px;
    border: 2px solid #333;
    border-top-color: #8b5cf6;
    border-radius: 50%;
    animation: spin 0.8s linear infinite;
  }
  @keyframes spin { to { transform: rotate(360deg); } }

  .status {
    font-size: 0.75rem;
    color: #888;
    min-height: 1.2em;
  }
  .status .timer { color: #8b5cf6; font-variant-numeric: tabular-nums; }
</style>
</head>
<body>
<div class="container">

  <div class="top-bar">
    <h1><span>&#9670;</span> Mockup Studio</h1>
    <p>Generate a product mockup, then brand it with your logo.</p>
  </div>

  <div id="alert" class="alert" role="alert">
    <span id="alertText"></span>
    <button onclick="dismissError()" title="Close">&#10005;</button>
  </div>

  <!-- ═══ STEP 1: Describe ═══ -->
  <div id="step1" class="step">
    <div class="step-body">
      <div>
        <div class="step-header"><div class="step-num">1</div><h3>Generate a Mockup</h3></div>
        <p class="hint">Describe the product you want to create a mockup for.</p>
      </div>
      <label for="mockupPrompt">Product Description</label>
      <textarea id="mockupPrompt" placeholder="e.g., a black coffee mug on a wooden table"></textarea>
      <div>
        <p class="hint" style="margin-bottom:8px">Or try one of these:</p>
        <div id="chips" class="chips"></div>
      </div>
      <button id="generateBtn" onclick="generateMockup()">Generate Mockup &#8594;</button>
      <div id="s1Status" class="status"></div>
    </div>
    <div id="mockupPanel" class="image-panel">Mockup will appear here</div>
  </div>

  <!-- ═══ STEP 2: Brand ═══ -->
  <div id="step2" class="step">
    <div class="step-body">
      <div>
        <div class="step-header"><div class="step-num">2</div><h3>Add Your Logo</h3></div>
        <p class="hint">Upload your logo and tell the AI how to place it.</p>
      </div>
      <input id="logoInput" type="file" accept="image/png, image/jpeg, image/webp" style="display:none" onchange="uploadLogo(this)">
      <div id="dropzone" class="dropzone" onclick="document.getElementById('logoInput').click()"></div>
      <label for="editPrompt">Instructions</label>
      <textarea id="editPrompt" placeholder="e.g., place the logo on the front of the mug"></textarea>
      <button id="applyBtn" onclick="applyLogo()">Create Final Image</button>
      <div id="s2Status" class="status"></div>
    </div>
    <div id="brandPanel" class="image-panel">Your Mockup</div>
  </div>

  <!-- ═══ STEP 3: Result ═══ -->
  <div id="step3" class="step">
    <div class="step-body">
      <div>
        <div class="step-header"><div class="step-num">3</div><h3>Your Final Product!</h3></div>
        <p class="hint">Here is your final product mockup with the logo applied.</p>
      </div>
      <button onclick="resetFlow()">&#8635; Create Another Mockup</button>
    </div>
    <div id="finalPanel" class="image-panel">Final Product</div>
  </div>

</div>

<script>
  let state = null;
  let pending = false;

  // ── Timer helper ──
  function createTimer(el) {
    let iv = null;
    return {
      start() {
        const t0 = Date.now();
        clearInterval(iv);
        iv = setInterval(() => {
          el.innerHTML = '<span class="timer">' + ((Date.now()-t0)/1000).toFixed(1) + 's</span> waiting...';
        }, 100);
      },
      stop() { clearInterval(iv); iv = null; el.textContent = ''; }
    };
  }
  const s1Timer = createTimer(document.getElementById('s1Status'));
  const s2Timer = createTimer(document.getElementById('s2Status'));

  // ── API helper ──
  async function post(url, body) {
    const opts = { method: 'POST' };
    if (body instanceof FormData) {
      opts.body = body;
    } else {
      opts.headers = { 'Content-Type': 'application/json' };
      opts.body = JSON.stringify(body || {});
    }
    const res = await fetch(url, opts);
    const data = await res.json();
    if (!res.ok || data.error) throw new Error(data.error || 'HTTP ' + res.status);
    return data;
  }

  function imagePanel(el, src, title, loading) {
    if (loading) {
      el.innerHTML = '<div class="loading"><div class="spinner"></div>Generating...</div>';
    } else if (src) {
      el.innerHTML = '<img src="' + src + '" alt="' + title + '">';
    } else {
      el.textContent = title;
    }
  }

  function render() {
    const busy = pending || state.isLoading;
    [1, 2, 3].forEach(n => {
      document.getElementById('step' + n).classList.toggle('active', state.step === n);
    });

    const alert = document.getElementById('alert');
    alert.classList.toggle('visible', !!state.errorMessage);
    document.getElementById('alertText').textContent = state.errorMessage || '';

    const mp = document.getElementById('mockupPrompt');
    if (document.activeElement !== mp) mp.value = state.mockupPrompt;
    const ep = document.getElementById('editPrompt');
    if (document.activeElement !== ep) ep.value = state.editPrompt;

    const gen = document.getElementById('generateBtn');
    gen.disabled = busy;
    gen.innerHTML = busy ? 'Generating...' : 'Generate Mockup &#8594;';

    const apply = document.getElementById('applyBtn');
    apply.disabled = busy || !state.logoImage;
    apply.textContent = busy ? 'Applying Logo...' : 'Create Final Image';

    const dz = document.getElementById('dropzone');
    if (state.logoImage) {
      dz.innerHTML = '<img src="' + state.logoImage + '" alt="Logo preview"><p class="ok">&#10003; Logo Uploaded</p>'
        + '<p>Click to choose a different logo</p>';
    } else {
      dz.innerHTML = '<p style="color:#e0e0e0;font-weight:600">Click to upload your logo</p><p>PNG, JPG, WEBP</p>';
    }

    imagePanel(document.getElementById('mockupPanel'), state.mockupImage, 'Mockup will appear here', busy);
    imagePanel(document.getElementById('brandPanel'), state.mockupImage, 'Your Mockup', false);
    imagePanel(document.getElementById('finalPanel'), state.finalImage, 'Final Product', busy);
  }

  function renderChips(suggestions) {
    const chips = document.getElementById('chips');
    chips.innerHTML = '';
    suggestions.forEach((text, i) => {
      const b = document.createElement('button');
      b.className = 'chip';
      b.textContent = text;
      b.addEventListener('click', () => run(() => post('/api/suggestion', { index: i })));
      chips.appendChild(b);
    });
  }

  async function run(call, timer) {
    pending = true;
    render();
    if (timer) timer.start();
    try {
      state = await call();
    } catch (e) {
      state.errorMessage = e.message;
    } finally {
      if (timer) timer.stop();
      pending = false;
      render();
    }
  }

  function generateMockup() {
    const prompt = document.getElementById('mockupPrompt').value;
    run(() => post('/api/mockup', { prompt }), s1Timer);
  }

  function uploadLogo(input) {
    const file = input.files && input.files[0];
    if (!file) return;
    const form = new FormData();
    form.append('logo', file);
    input.value = '';
    run(() => post('/api/logo', form));
  }

  function applyLogo() {
    const instruction = document.getElementById('editPrompt').value;
    run(() => post('/api/apply', { instruction }), s2Timer);
  }

  function resetFlow() { run(() => post('/api/reset')); }

  function dismissError() { run(() => post('/api/error/dismiss')); }

  document.getElementById('mockupPrompt').addEventListener('keydown', e => {
    if (e.key === 'Enter' && (e.metaKey || e.ctrlKey)) { e.preventDefault(); generateMockup(); }
  });

  (async () => {
    const res = await fetch('/api/state');
    state = await res.json();
    renderChips(state.suggestions || []);
    render();
  })();
</script>
</body>
</html>
"""

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app.run(debug=True, port=settings.port, threaded=True)
