"""
Tests for the command-line interface.
"""

import pytest
import yaml

from geoar.cli import main
from geoar.sync.cells import spatial_cell_id


class TestCommands:

    def test_to_enu(self, capsys):
        code = main(['to-enu', '46.5197', '6.5663', '425', '--ref', '46.5197', '6.5663', '400'])

        assert code == 0
        assert "U: 25.0000" in capsys.readouterr().out

    def test_to_geodetic(self, capsys):
        code = main(['to-geodetic', '0', '0', '10', '--ref', '46.5', '6.5', '400'])

        assert code == 0
        out = capsys.readouterr().out
        assert "lat: 46.500000000" in out
        assert "h: 410.0000" in out

    def test_to_ecef(self, capsys):
        assert main(['to-ecef', '0', '0', '0']) == 0
        assert "X: 6378137.0000" in capsys.readouterr().out

    def test_relative_with_negative_longitudes(self, capsys):
        code = main(['relative', '50.06632', '-5.71475', '0', '58.64402', '-3.07009', '0'])

        assert code == 0
        out = capsys.readouterr().out
        assert "East:" in out and "Local position:" in out

    def test_cell(self, capsys):
        assert main(['cell', '46.5197', '6.5663', '--resolution', '9']) == 0
        assert capsys.readouterr().out.strip() == spatial_cell_id(46.5197, 6.5663, 9)

    def test_cell_resolution_from_config(self, tmp_path, capsys):
        path = tmp_path / "geoar.yaml"
        with open(path, 'w') as f:
            yaml.dump({'sync': {'cell_resolution': 6}}, f)

        assert main(['--config', str(path), 'cell', '46.5197', '6.5663']) == 0
        assert capsys.readouterr().out.strip().endswith(spatial_cell_id(46.5197, 6.5663, 6))


class TestErrors:

    def test_invalid_latitude(self):
        assert main(['to-ecef', '95', '0', '0']) == 1

    def test_missing_config(self, tmp_path):
        assert main(['--config', str(tmp_path / 'missing.yaml'), 'to-ecef', '0', '0', '0']) == 1

    def test_missing_subcommand(self):
        with pytest.raises(SystemExit):
            main([])
