# reactornet

reactornet is a small reactor-style networking framework. Each event loop
runs in one thread and watches sockets through a `selectors`-based poller.
Connections carry their own input and output buffers. A timer wheel, advanced
once per tick (one second by default), can release idle connections. On top of
that sit an echo server and a minimal HTTP server with regex routing and
static file serving.

## Installing

```
pip install .
```

The package has no runtime dependencies. To run the tests:

```
pip install ".[test]"
pytest
```

## Commands

Start the echo server. It sends every message back to the client and then
closes the connection:

```
reactornet-echo [--port 8500] [--address 0.0.0.0] [--threads 1] [--verbose]
```

Start the HTTP server:

```
reactornet-http [--port 8500] [--address 0.0.0.0] [--timeout 10] [--threads 0] [--base-dir DIR] [--verbose]
```

Both commands run until they are interrupted. `--timeout` is the number of
ticks an idle connection is kept before it is released, and it must be below
60. `--base-dir` sets the directory static files are served from.

## Building your own server

`reactornet.tcpserver.TcpServer` accepts connections on a port. It hands each
connection to an event loop from its `LoopThreadPool`. With a thread count of
0 it uses the base loop. You react to events by assigning callbacks.
`on_connected`, `on_closed` and `on_any_event` receive the `Connection`.
`on_message` receives the `Connection` and its input `Buffer`:

```python
from reactornet.tcpserver import TcpServer

server = TcpServer(8500)
server.set_thread_count(2)

def on_message(conn, buffer):
    conn.send(buffer.read())

server.on_message = on_message
server.start()          # runs the base loop in this thread; server.stop() ends it
```

Other `TcpServer` members:

- `enable_inactive_release(timeout)`: every new connection is released after
  `timeout` idle ticks.
- `run_after(task, delay)`: runs `task` once after `delay` ticks of the base
  loop.
- `port`: the port the server is actually bound to, which is useful when it
  is created with port 0.

The building blocks:

- `reactornet.buffer.Buffer` is a FIFO byte queue with `write`, `read`,
  `peek`, `consume`, `read_line`, `write_string`, `read_string` and
  `write_buffer`. It holds at most 65535 readable bytes. A `write` that would
  exceed that limit raises `BufferError`.
- `reactornet.netsocket.Socket` wraps an IPv4 TCP socket, with
  `create_server`, `create_client`, `accept`, `recv` and `send`. It raises
  `SocketError` on failure. `recv` returns `b""` when no data is available yet
  and raises `SocketError` when the peer has closed the connection.
- `reactornet.connection.Connection` provides `send`, `shutdown` (close once
  pending output is sent), `release` (close now), and
  `enable_inactive_release(seconds)` / `cancel_inactive_release()`. Its
  `context` attribute holds per-connection state.
- `reactornet.timerwheel.TimerWheel` is a 60-slot wheel with `add_task`,
  `delay_task` (refresh), `cancel_task`, `has_timer` and `tick`. Delays must
  be in the range 0–59.
- `reactornet.eventloop` provides `Channel`, `Poller`, `EventLoop`,
  `LoopThread` and `LoopThreadPool`. Use `EventLoop.run_in_loop` or
  `queue_in_loop` to hand work to a loop's own thread, and `stop()` to end
  `start()`.

`reactornet.demo` has `run_client(address, port, message)` and
`run_server(port, address)`. These are a blocking one-message client and
server that exchange a single NUL-terminated message.

## HTTP

`reactornet.httpserver.HttpServer` parses requests with
`reactornet.httpcontext.HttpContext` into `HttpRequest` objects. It answers
with `HttpResponse` objects (both are in `reactornet.message`) and routes
requests by method and a full-match regex on the path:

```python
from reactornet.httpserver import HttpServer

app = HttpServer(8080)

def hello(request, response):
    response.set_content("<h1>hello</h1>", "text/html")

app.get(r"/hello", hello)
app.set_base_dir("./www")   # raises NotADirectoryError if it is not a directory
app.start()
```

Routing works as follows:

- A GET or HEAD request for an existing file under the base directory is
  served from disk. A path ending in `/` gets `index.html` appended.
- Other requests go to the routes registered with `get`, `post`, `put` or
  `delete`. HEAD uses the GET routes.
- When no route matches, the status is 404. Unsupported methods get 405.
- The groups of the matching regex are stored in `request.matches`.
- Parse errors produce an error page and close the connection.
- A connection is kept open only when the request sent `Connection:
  keep-alive`.

`reactornet.httputil` holds the helpers used along the way: `encode_url`,
`decode_url`, `status_message`, `mime_type`, `valid_path`, `split_string`,
`read_file`, `write_file`, `is_directory` and `is_regular_file`.

## What it does not do

- There is no TLS, IPv6, chunked transfer encoding or HTTP/2.
- The request parser accepts only GET, POST, PUT and DELETE request lines.
- Bodies are read only up to `Content-Length`.
- HEAD responses are not stripped of their body.
- The status text table covers only codes 100–103 and 200–203. Any other code
  is reported as `Unknown`.
- The MIME table knows only `.aac`, `.abw` and `.txt`. Files served from the
  base directory are always labelled `text/html`.