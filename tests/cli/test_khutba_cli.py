import json
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import requests

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

import khutba_cli
from khutba_cli import apply_cli_overrides, build_arg_parser, cli_main, download_sermon_audio
from khutba_config import DEFAULT_CONFIG
from khutba_models import ErrorKind, Sermon

GENERATED = Sermon(
    audio_url='/audio/hope.wav',
    text='Bismillah. With every difficulty comes ease.',
    title='Hope After Loss',
    full_audio_url='https://islamicaudio.techrealm.online/audio/hope.wav',
    purpose='grief',
)


@pytest.fixture
def fake_client():
    """Patch the CLI's client, config loading and logging setup."""
    client = MagicMock()
    client.generate.return_value = GENERATED
    with patch('khutba_cli.KhutbaClient') as client_cls, \
            patch('khutba_cli.load_config', side_effect=lambda path: json.loads(json.dumps(DEFAULT_CONFIG))), \
            patch('khutba_cli.setup_logging'):
        client_cls.return_value.__enter__.return_value = client
        yield client_cls, client


def test_parser_defaults():
    args = build_arg_parser().parse_args(['patience'])
    assert args.purpose == 'patience'
    assert args.timeout is None
    assert args.max_retries is None
    assert not args.no_connectivity_check
    assert not args.json
    assert args.download_audio is None


def test_cli_overrides_fold_into_config():
    args = build_arg_parser().parse_args(
        ['grief', '--timeout', '60', '--max-retries', '4', '--no-connectivity-check'])
    config = apply_cli_overrides({'api': {'timeout_seconds': 30}}, args)

    assert config['api']['timeout_seconds'] == 60.0
    assert config['api']['max_retries'] == 4
    assert config['connectivity']['enabled'] is False


def test_cli_prints_generated_sermon(fake_client, capsys):
    client_cls, client = fake_client

    assert cli_main(['grief']) == 0

    client.generate.assert_called_once_with('grief')
    out = capsys.readouterr().out
    assert 'Khutba generated' in out
    assert 'Hope After Loss' in out
    assert GENERATED.full_audio_url in out


def test_cli_reports_fallback(fake_client, capsys):
    _, client = fake_client
    client.generate.return_value = Sermon(
        audio_url='/a.wav', text='t', title='Sample - Grief', purpose='grief',
        error_kind=ErrorKind.AUTH)

    assert cli_main(['grief']) == 0
    assert 'Showing sample sermon (auth error)' in capsys.readouterr().out


def test_cli_json_output(fake_client, capsys):
    assert cli_main(['grief', '--json']) == 0

    data = json.loads(capsys.readouterr().out)
    assert data['title'] == 'Hope After Loss'
    assert data['error_kind'] == 'none'


def test_cli_passes_overrides_to_client(fake_client):
    client_cls, _ = fake_client

    cli_main(['grief', '--max-retries', '0'])

    config = client_cls.call_args.args[0]
    assert config['api']['max_retries'] == 0


def test_cli_rejects_blank_purpose(fake_client):
    with pytest.raises(SystemExit) as exc:
        cli_main(['   '])
    assert exc.value.code == 2


def test_cli_rejects_missing_config(tmp_path):
    with patch('khutba_cli.setup_logging'), pytest.raises(SystemExit) as exc:
        cli_main(['grief', '--config', str(tmp_path / 'missing.yaml')])
    assert exc.value.code == 2


def test_cli_downloads_audio(fake_client, tmp_path, capsys):
    with patch('khutba_cli.download_file') as mock_download:
        assert cli_main(['grief', '--download-audio', str(tmp_path)]) == 0

    expected = str(tmp_path / 'hope.wav')
    mock_download.assert_called_once_with(GENERATED.full_audio_url, expected)
    assert f'Audio saved to {expected}' in capsys.readouterr().out


def test_download_failure_is_reported(tmp_path, capsys):
    with patch('khutba_cli.download_file', side_effect=requests.HTTPError('404 Not Found')):
        assert download_sermon_audio(GENERATED, str(tmp_path)) is None
    assert 'Audio download failed' in capsys.readouterr().out


def test_download_skipped_without_audio(tmp_path):
    sermon = Sermon(audio_url='', text='t', title='T')
    with patch('khutba_cli.download_file') as mock_download:
        assert download_sermon_audio(sermon, str(tmp_path)) is None
    mock_download.assert_not_called()


def test_main_turns_crash_into_exit_code(capsys):
    with patch.object(khutba_cli, 'cli_main', side_effect=RuntimeError('boom')):
        assert khutba_cli.main() == 1
    assert 'Fatal error: boom' in capsys.readouterr().out


def test_cli_json_output_stays_parseable_on_fallback(capsys):
    """Fallback notices go to stderr so --json output remains valid JSON."""
    with patch('khutba_api.is_online', return_value=False), \
            patch('khutba_cli.load_config', side_effect=lambda path: json.loads(json.dumps(DEFAULT_CONFIG))), \
            patch('khutba_cli.setup_logging'):
        assert cli_main(['grief', '--json']) == 0

    captured = capsys.readouterr()
    data = json.loads(captured.out)
    assert data['error_kind'] == 'network'
    assert data['title'].endswith(' - Grief')
    assert 'Network Connection Error' in captured.err


def test_cli_json_download_failure_keeps_stdout_clean(fake_client, tmp_path, capsys):
    with patch('khutba_cli.download_file', side_effect=requests.ConnectionError('reset')):
        assert cli_main(['grief', '--json', '--download-audio', str(tmp_path)]) == 0

    data = json.loads(capsys.readouterr().out)
    assert data['title'] == 'Hope After Loss'


def test_interrupted_download_removes_partial_file(tmp_path):
    partial = tmp_path / 'hope.wav'

    def write_then_fail(url, local_path):
        Path(local_path).write_bytes(b'RIFF')
        raise requests.ConnectionError('Connection reset by peer')

    with patch('khutba_cli.download_file', side_effect=write_then_fail):
        assert download_sermon_audio(GENERATED, str(tmp_path)) is None

    assert not partial.exists()


def test_unwritable_download_dir_is_reported(tmp_path, capsys):
    with patch('khutba_cli.os.makedirs', side_effect=OSError('Read-only file system')), \
            patch('khutba_cli.download_file') as mock_download:
        assert download_sermon_audio(GENERATED, str(tmp_path / 'out')) is None

    mock_download.assert_not_called()
    assert 'Read-only file system' in capsys.readouterr().out


def test_cli_overrides_tolerate_empty_sections():
    args = build_arg_parser().parse_args(['grief', '--timeout', '5', '--no-connectivity-check'])
    config = apply_cli_overrides({'api': None, 'connectivity': None}, args)

    assert config['api'] == {'timeout_seconds': 5.0}
    assert config['connectivity'] == {'enabled': False}


def test_download_file_streams_chunks(tmp_path):
    response = MagicMock()
    response.iter_content.return_value = [b'RIFF', b'WAVEfmt ']
    target = tmp_path / 'hope.wav'

    with patch('khutba_cli.requests.get') as mock_get:
        mock_get.return_value.__enter__.return_value = response
        written = khutba_cli.download_file('https://example.com/hope.wav', str(target))

    assert written == 12
    assert target.read_bytes() == b'RIFFWAVEfmt '
    response.raise_for_status.assert_called_once()
    assert mock_get.call_args.kwargs['stream'] is True
