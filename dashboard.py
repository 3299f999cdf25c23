from aiohttp import web
import logging
from stats_manager import StatsManager

logger = logging.getLogger(__name__)

# ==========================================
# STATUS PAGE (Registered Peers + Counters)
# ==========================================
STATUS_HTML = """
<!DOCTYPE html>
<html>
<head>
    <title>Rendezvous Server</title>
    <style>
        body { background-color: #1e1e1e; color: #00ff00; font-family: monospace; padding: 20px; }
        .card { border: 1px solid #333; padding: 15px; margin-bottom: 20px; border-radius: 5px; background: #252526; }
        h1, h2 { color: #00ff00; text-shadow: 0 0 5px #00ff00; }
        .stat-value { font-size: 1.5em; font-weight: bold; }
        table { width: 100%; border-collapse: collapse; margin-top: 10px; }
        th, td { border: 1px solid #333; padding: 8px; text-align: left; }
        th { background-color: #222; }
    </style>
</head>
<body>
    <h1>Rendezvous Server</h1>

    <div class="card">
        <h2>Server</h2>
        <div>Uptime: <span id="uptime" class="stat-value">0</span> s</div>
        <div>Connections: <span id="connections" class="stat-value">0</span></div>
        <div>Received: <span id="bytes_received">0</span> B / Sent: <span id="bytes_sent">0</span> B</div>
        <div>Outcomes: <span id="outcomes"></span></div>
        <div>Last request: <span id="last_request"></span></div>
        <div>Last reply: <span id="last_response"></span></div>
    </div>

    <div class="card">
        <h2>Registered Peers (<span id="peer_count">0</span>)</h2>
        <table>
            <thead>
                <tr><th>#</th><th>Username</th><th>Host</th><th>Port</th></tr>
            </thead>
            <tbody id="peer_table_body"></tbody>
        </table>
    </div>

    <script>
        function text(id, value) { document.getElementById(id).textContent = value; }

        function updateStats() {
            fetch('/api/stats')
                .then(response => response.json())
                .then(data => {
                    text('uptime', data.uptime);
                    text('connections', data.connections);
                    text('bytes_received', data.bytes_received);
                    text('bytes_sent', data.bytes_sent);
                    text('outcomes', Object.entries(data.outcomes).map(([k, v]) => `${k}=${v}`).join(' '));
                    text('last_request', data.last_request);
                    text('last_response', data.last_response);
                    text('peer_count', data.peer_count);
                });

            fetch('/api/peers')
                .then(response => response.json())
                .then(peers => {
                    const body = document.getElementById('peer_table_body');
                    body.innerHTML = '';
                    peers.forEach((p, i) => {
                        const row = document.createElement('tr');
                        [i + 1, p.username, p.host, p.port].forEach(v => {
                            const cell = document.createElement('td');
                            cell.textContent = v;
                            row.appendChild(cell);
                        });
                        body.appendChild(row);
                    });
                });
        }

        setInterval(updateStats, 1000);
        updateStats();
    </script>
</body>
</html>
"""

async def handle_index(request):
    return web.Response(text=STATUS_HTML, content_type='text/html')

async def handle_stats(request):
    stats = StatsManager().get_stats()
    return web.json_response(stats)

async def handle_peers(request):
    return web.json_response(StatsManager().get_peers())

def create_app() -> web.Application:
    app = web.Application()
    app.router.add_get('/', handle_index)
    app.router.add_get('/api/stats', handle_stats)
    app.router.add_get('/api/peers', handle_peers)
    return app

async def start_dashboard(port=8888, host='0.0.0.0') -> web.AppRunner:
    """
    Serves the status page in the background. Call runner.cleanup() to stop it.
    Port 0 binds a free port; dashboard_port(runner) tells which one.
    """
    runner = web.AppRunner(create_app())
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info(f"Dashboard started at http://localhost:{dashboard_port(runner)}")
    return runner

def dashboard_port(runner: web.AppRunner) -> int:
    return runner.addresses[0][1]
