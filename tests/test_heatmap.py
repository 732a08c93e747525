import unittest

from fleetscope.analytics.heatmap import MovementHeatmap, SignalHeatmapAggregator

from support import sample


class SignalHeatmapTests(unittest.TestCase):
    def setUp(self):
        self.samples = [
            sample(9.0301, 38.7401, signal_strength=10),
            sample(9.0302, 38.7403, signal_strength=30),
            sample(9.0451, 38.7501, signal_strength=90),
            sample(9.0451, 38.7501, signal_strength=None),
            sample(None, 38.7501, signal_strength=5),
        ]

    def test_readings_are_averaged_per_cell(self):
        heatmap = SignalHeatmapAggregator().aggregate(self.samples)
        points = [p.to_dict() for p in heatmap.points]

        self.assertEqual(points[0], {'lat': 9.03, 'lng': 38.74, 'avg_signal': 20.0, 'sample_count': 2})
        self.assertEqual(points[1]['sample_count'], 1)
        self.assertEqual(points[1]['avg_signal'], 90.0)

    def test_rollup_stats(self):
        stats = SignalHeatmapAggregator().aggregate(self.samples).stats()

        self.assertEqual(stats, {
            'total_points': 2,
            'avg_signal': 55,
            'weak_signal_areas': 1,
            'strong_signal_areas': 1
        })

    def test_empty_input_is_neutral(self):
        heatmap = SignalHeatmapAggregator().aggregate([])
        self.assertEqual(heatmap.stats()['avg_signal'], 0)
        self.assertEqual(heatmap.to_geojson(), {'type': 'FeatureCollection', 'features': []})

    def test_geojson_points_are_lng_lat(self):
        feature = SignalHeatmapAggregator().aggregate(self.samples[:1]).to_geojson()['features'][0]
        self.assertEqual(feature['geometry']['coordinates'], [38.74, 9.03])


class MovementHeatmapTests(unittest.TestCase):
    def test_counts_moving_and_stationary_points(self):
        samples = [sample(9.0, 38.7, 40, engine_on=True), sample(9.1, 38.7, 2), sample(None, 38.7, 50)]
        result = MovementHeatmap().analyze(samples)

        self.assertEqual(result['total_points'], 2)
        self.assertEqual(result['moving_points'], 1)
        self.assertEqual(result['stationary_points'], 1)

    def test_filters(self):
        samples = [sample(9.0, 38.7, 40, engine_on=True), sample(9.0, 38.7, 40, engine_on=False),
                   sample(9.1, 38.7, 2)]
        heatmap = MovementHeatmap()

        self.assertEqual(len(heatmap.filter(samples, 'moving')), 1)
        self.assertEqual(len(heatmap.filter(samples, 'stationary')), 1)

    def test_crowded_cells_become_hotspots(self):
        crowd = [sample(9.0 + i * 0.00001, 38.7) for i in range(11)]
        loner = [sample(9.5, 38.7)]
        result = MovementHeatmap().analyze(crowd + loner)

        self.assertEqual(result['hotspots'], 1)
