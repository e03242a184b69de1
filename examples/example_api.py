"""
Example script demonstrating the Python API.
"""

from wind_ca import DispersalSimulator, SimulationConfig, StaticWindProvider


def main():
    """Run example simulation."""
    print("Creating wind field...")
    provider = StaticWindProvider.uniform(
        bounds=(140.0, -40.0, 150.0, -30.0),
        resolution=0.25,
        speed=8.0,
        bearing=60.0  # Toward the north-east
    )
    
    print("Initializing simulator...")
    config = SimulationConfig(
        origins=((144.96, -37.81), (145.5, -36.0)),
        nforecast=24,
        nsim=50,
        cellsize=25000.0,
        full=True,
        seed=2022
    )
    simulator = DispersalSimulator(provider, config)
    
    print("Running simulation...")
    
    total = config.units * config.nforecast
    
    def progress(done):
        if done % config.nforecast == 0:
            print(f"  Hours: {done}/{total}")
    
    simulator.run(progress=progress)
    
    print("\nGenerating output...")
    raster = simulator.generate_output("example_api_output")
    
    print("\nSimulation statistics:")
    stats = simulator.get_statistics()
    for key, value in stats.items():
        print(f"  {key}: {value}")
    
    print("\nGrid statistics:")
    grid_stats = raster.get_grid_statistics()
    for key, value in grid_stats.items():
        print(f"  {key}: {value}")
    
    print("\nDone! Check example_api_output.png, example_api_output.pgw and example_api_output.nc")


if __name__ == "__main__":
    main()
