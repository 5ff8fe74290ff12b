"""HTML click log for operators."""

from html import escape

from clicklog.models.click import Click


def _e(value: object) -> str:
    """Escape a value for HTML text and attribute context; None renders empty."""
    return escape("" if value is None else str(value), quote=True)


def _row(click: Click) -> str:
    approx = " / ".join(
        part for part in (click.approx_country, click.approx_region, click.approx_city) if part
    )
    return f"""<tr>
      <td>{_e(click.id)}</td>
      <td>{_e(click.created_at)}</td>
      <td>{_e(click.ip)}</td>
      <td><code>{_e(click.ip_chain)}</code></td>
      <td>{_e(click.referrer)}</td>
      <td>{_e(click.dest_url)}</td>
      <td>{_e(approx)}</td>
      <td>{_e(click.approx_lat)}, {_e(click.approx_lon)}</td>
      <td>{_e(click.precise_lat)}, {_e(click.precise_lon)} ({_e(click.precise_accuracy_m)} m)</td>
      <td>
        <div>UA: <code>{_e(click.user_agent)}</code></div>
        <div>Accept-Lang: <code>{_e(click.accept_language)}</code></div>
        <div>Plat/Vendor: <code>{_e(click.device_platform)} / {_e(click.device_vendor)}</code></div>
        <div>Lang(s): <code>{_e(click.device_language)} | {_e(click.device_languages)}</code></div>
        <div>TZ: <code>{_e(click.device_timezone)}</code></div>
        <div>HW: <code>{_e(click.device_hardware_concurrency)} thr, {_e(click.device_memory_gb)} GB</code></div>
        <div>Screen: <code>{_e(click.device_screen_w)}x{_e(click.device_screen_h)} @ {_e(click.device_color_depth)}-bit</code></div>
        <div>DNT: <code>{"1" if click.do_not_track else "0"}</code></div>
      </td>
      <td>{"yes" if click.consented else "no"}</td>
    </tr>"""


def render_admin_page(clicks: list[Click]) -> str:
    """Render recent clicks as an HTML table. Every stored value is escaped."""
    rows = "".join(_row(click) for click in clicks)
    return f"""<!doctype html>
<html>
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>Click Logs</title>
  </head>
  <body>
    <h1>Recent Clicks</h1>
    <p>Total shown: {len(clicks)}</p>
    <table border="1" cellpadding="6">
      <thead>
        <tr>
          <th>id</th>
          <th>created_at</th>
          <th>ip</th>
          <th>ip chain</th>
          <th>referrer</th>
          <th>dest</th>
          <th>approx</th>
          <th>approx ll</th>
          <th>precise ll (acc)</th>
          <th>device info</th>
          <th>consented</th>
        </tr>
      </thead>
      <tbody>
        {rows}
      </tbody>
    </table>
  </body>
</html>"""
